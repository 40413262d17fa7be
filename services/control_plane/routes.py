"""
Control Plane Routes
====================

Founder-only HTTP surface for the admin console: snapshot, live stream and
actions.

Version: 0.1.0
"""

import asyncio
import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from services.control_plane.jobs import AdminJobRunner
from services.control_plane.models import (
    ActionRequest,
    AdminControlPlaneSnapshot,
    ControlPlaneAction,
    ControlPlaneError,
)
from services.control_plane.repository import (
    ControlPlaneRepository,
    ControlPlaneScopeFactory,
    get_control_plane_repository,
    get_control_plane_scope_factory,
)
from services.control_plane.service import ControlPlaneService, now_iso, resolve_environment
from shared.auth import User, require_founder
from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)

router = APIRouter()

NO_STORE = "private, no-store, max-age=0"


def get_job_runner(
    scope_factory: ControlPlaneScopeFactory = Depends(get_control_plane_scope_factory),
) -> AdminJobRunner:
    return AdminJobRunner(scope_factory)


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def control_plane_events(
    scope_factory: ControlPlaneScopeFactory,
    environment: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    interval_seconds: float,
) -> AsyncGenerator[str, None]:
    """
    Yield ``snapshot`` events when the stream version moves, ``heartbeat`` otherwise.

    Each tick opens its own short transaction.
    """
    last_version: str | None = None

    while not await is_disconnected():
        async with scope_factory() as repo:
            service = ControlPlaneService(repo)
            version = await service.read_stream_version(environment)
            snapshot = (
                await service.get_snapshot(environment) if version != last_version else None
            )

        if snapshot is not None:
            last_version = version
            yield _sse("snapshot", snapshot.model_dump_json())
        else:
            yield _sse("heartbeat", json.dumps({"at": now_iso()}))

        await asyncio.sleep(interval_seconds)


@router.get("", response_model=AdminControlPlaneSnapshot)
async def get_snapshot(
    environment: str | None = Query(default=None),
    current_user: User = Depends(require_founder),
    repository: ControlPlaneRepository = Depends(get_control_plane_repository),
) -> JSONResponse:
    """Full control plane snapshot for one environment."""
    snapshot = await ControlPlaneService(repository).get_snapshot(environment)
    return JSONResponse(
        content=snapshot.model_dump(mode="json"),
        headers={"Cache-Control": NO_STORE},
    )


@router.get("/stream")
async def stream_snapshot(
    request: Request,
    environment: str | None = Query(default=None),
    current_user: User = Depends(require_founder),
    scope_factory: ControlPlaneScopeFactory = Depends(get_control_plane_scope_factory),
) -> StreamingResponse:
    """Server-Sent Events feed of snapshot changes."""
    resolved = resolve_environment(environment)
    logger.info("control_plane_stream_opened", environment=resolved, user_id=current_user.id)

    return StreamingResponse(
        control_plane_events(
            scope_factory,
            resolved,
            request.is_disconnected,
            settings.control_plane.stream_interval_seconds,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("")
async def post_action(
    request: ActionRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_founder),
    repository: ControlPlaneRepository = Depends(get_control_plane_repository),
    scope_factory: ControlPlaneScopeFactory = Depends(get_control_plane_scope_factory),
    runner: AdminJobRunner = Depends(get_job_runner),
) -> Any:
    """
    Apply one console action.

    Validation failures and unknown actions return 400 ``{"error": ...}``.
    ``enqueue_job`` commits the job in its own transaction before the
    background run is scheduled; the request session commits only after
    background tasks finish.
    """
    environment = resolve_environment(request.environment)
    action = request.action.strip()

    try:
        if action == ControlPlaneAction.RUN_JOB.value:
            job_id = str(request.payload.get("jobId") or "").strip()
            if not job_id:
                raise ControlPlaneError("jobId is required")
            job = await runner.run_job(job_id, environment)
            await ControlPlaneService(repository).record_action(
                current_user.id, environment, ControlPlaneAction.RUN_JOB
            )
            return {"ok": True, "job": job.model_dump(mode="json")}

        if action == ControlPlaneAction.ENQUEUE_JOB.value:
            async with scope_factory() as job_scope:
                body = await ControlPlaneService(job_scope).handle_action(
                    current_user.id, environment, action, request.payload
                )
            background_tasks.add_task(runner.run_job_quietly, body["job"]["id"], environment)
            return body

        return await ControlPlaneService(repository).handle_action(
            current_user.id, environment, action, request.payload
        )
    except ControlPlaneError as e:
        logger.warning("control_plane_action_rejected", action=action, error=str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})
