"""
Control Plane Service - Main Application
========================================

FastAPI application behind the founder admin console.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.control_plane import routes
from shared import __version__
from shared.config import settings
from shared.database.postgres import PostgresClient
from shared.logging import get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse


setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="control-plane",
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "control_plane_starting",
        environment=settings.environment.value,
        port=settings.ports.control_plane,
        default_environment=settings.control_plane.default_environment.value,
    )

    try:
        PostgresClient.get_engine()
        logger.info("postgres_connected")
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    logger.info("control_plane_shutting_down")
    await PostgresClient.close()


app = FastAPI(
    title="FormaOS Admin Control Plane",
    description="Feature flags, runtime settings and admin jobs",
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
    return HealthResponse.from_components(
        "control-plane",
        __version__,
        {"postgres": await PostgresClient.health_check()},
    )


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    routes.router,
    prefix="/api/admin/control-plane",
    tags=["Control Plane"],
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
        "services.control_plane.main:app",
        host="0.0.0.0",
        port=settings.ports.control_plane,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
