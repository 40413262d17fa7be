"""
Automation Service - Main Application
=====================================

FastAPI application for compliance scoring, automation triggers, the
scheduled sweep and onboarding checklists.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.automation.routes import scheduled, scores, triggers
from services.onboarding import routes as onboarding
from shared import __version__
from shared.config import settings
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient
from shared.logging import get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse


setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="automation",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "automation_starting",
        environment=settings.environment.value,
        port=settings.ports.automation,
    )

    try:
        PostgresClient.get_engine()
        logger.info("postgres_connected")

        RedisClient.get_client()
        logger.info("redis_connected")

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    logger.info("automation_shutting_down")
    await PostgresClient.close()
    await RedisClient.close()


app = FastAPI(
    title="FormaOS Automation Service",
    description="Compliance scoring, automation triggers and onboarding",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health of the service and its datastores."""
    return HealthResponse.from_components(
        "automation",
        __version__,
        {
            "postgres": await PostgresClient.health_check(),
            "redis": await RedisClient.health_check(),
        },
    )


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "FormaOS Automation Service",
        "version": __version__,
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    scores.router,
    prefix="/api/v1/compliance",
    tags=["Compliance Scores"],
)

app.include_router(
    triggers.router,
    prefix="/api/v1/automation",
    tags=["Automation"],
)

app.include_router(
    scheduled.router,
    prefix="/api/v1/automation/scheduled",
    tags=["Scheduled Automation"],
)

app.include_router(
    onboarding.router,
    prefix="/api/v1/onboarding",
    tags=["Onboarding"],
)


# ============================================================================
# Error Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), status_code=exc.status_code).model_dump(
            mode="json"
        ),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(mode="json"),
    )


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.automation.main:app",
        host="0.0.0.0",
        port=settings.ports.automation,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
