"""
Admin Job Runner
================

Executes queued admin jobs: queued -> running -> succeeded | failed.

Each state change and log line is written in its own short transaction
so the live stream shows progress while the job runs.

Version: 0.1.0
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from services.automation.models import CheckResult, ScheduledCheck
from services.automation.services.scheduler import ScheduledProcessor
from services.control_plane.models import (
    AdminJobRecord,
    ControlPlaneError,
    JobStatus,
    JobType,
)
from services.control_plane.repository import ControlPlaneScopeFactory, control_plane_scope
from services.control_plane.service import ControlPlaneService, normalize_job, now_iso
from shared.config import settings
from shared.config.settings import ControlPlaneSettings
from shared.logging import get_logger


logger = get_logger(__name__)

STALE_JOB_SCAN_LIMIT = 200

ScoreRefresh = Callable[[], Awaitable[CheckResult]]


async def refresh_all_scores() -> CheckResult:
    """Run the scheduled score refresh scan."""
    return await ScheduledProcessor().run_scheduled_check(ScheduledCheck.SCORES)


@retry(
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    stop=stop_after_attempt(settings.control_plane.probe_max_retries),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
    before_sleep=lambda retry_state: logger.warning(
        "cdn_probe_retry",
        attempt=retry_state.attempt_number,
    ),
)
async def _head(client: httpx.AsyncClient, url: str) -> httpx.Response:
    return await client.head(url)


class AdminJobRunner:
    """
    Runs admin jobs by id.

    Args:
        scope_factory: Opens a transactional control plane repository
        score_refresh: Coroutine function behind ``recompute_scores``
        config: Control plane settings (probe URLs, limits)
        http_transport: Optional transport for the CDN probe client
    """

    def __init__(
        self,
        scope_factory: ControlPlaneScopeFactory = control_plane_scope,
        score_refresh: ScoreRefresh = refresh_all_scores,
        config: ControlPlaneSettings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.scope_factory = scope_factory
        self.score_refresh = score_refresh
        self.config = config or settings.control_plane
        self.http_transport = http_transport
        self.executors: dict[JobType, Callable[[str, str], Awaitable[dict[str, Any]]]] = {
            JobType.RUN_CLEANUP: self._run_cleanup,
            JobType.RECOMPUTE_SCORES: self._recompute_scores,
            JobType.REGENERATE_TRUST_PACKET: self._regenerate_trust_packet,
            JobType.WARM_CDN: self._warm_cdn,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run_job(self, job_id: str, environment: str) -> AdminJobRecord:
        """
        Run a job to completion.

        A job that is already running is returned unchanged. Failures inside
        the job mark it failed; they are not raised.

        Raises:
            ControlPlaneError: If the job does not exist
        """
        async with self.scope_factory() as repo:
            row = await repo.get_job(job_id)

        if not row:
            raise ControlPlaneError("Job not found")
        if row.get("status") == JobStatus.RUNNING.value:
            return normalize_job(row)

        job_type = str(row["job_type"])
        requested_by = str(row["requested_by"]) if row.get("requested_by") else None

        await self._set_state(
            job_id,
            status=JobStatus.RUNNING.value,
            started_at=datetime.now(UTC),
            progress=max(int(row.get("progress") or 0), 10),
            error_message=None,
        )
        await self._append_log(job_id, "info", f"Starting {job_type}")
        logger.info("admin_job_started", job_id=job_id, job_type=job_type)

        try:
            await self._set_state(job_id, progress=25)
            result = await self._execute(job_id, job_type, environment)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception("admin_job_failed", job_id=job_id, job_type=job_type)
            await self._set_state(
                job_id,
                status=JobStatus.FAILED.value,
                completed_at=datetime.now(UTC),
                error_message=message,
            )
            await self._append_log(job_id, "error", message)
            await self._audit(
                requested_by,
                environment,
                "admin_job.failed",
                job_id,
                {"job_type": job_type, "error": message},
            )
        else:
            await self._set_state(
                job_id,
                status=JobStatus.SUCCEEDED.value,
                progress=100,
                completed_at=datetime.now(UTC),
                result=result,
                error_message=None,
            )
            await self._append_log(job_id, "info", "Job completed successfully")
            await self._audit(
                requested_by, environment, "admin_job.succeeded", job_id, {"job_type": job_type}
            )
            logger.info("admin_job_succeeded", job_id=job_id, job_type=job_type)

        async with self.scope_factory() as repo:
            final = await repo.get_job(job_id)
        return normalize_job(final or row)

    async def run_job_quietly(self, job_id: str, environment: str) -> None:
        """Background entry point; a runner failure is logged, not raised."""
        try:
            await self.run_job(job_id, environment)
        except Exception as e:
            logger.error("admin_job_runner_failed", job_id=job_id, error=str(e))

    async def _execute(self, job_id: str, job_type: str, environment: str) -> dict[str, Any]:
        try:
            executor = self.executors[JobType(job_type)]
        except ValueError:
            raise ValueError(f"Unsupported job_type: {job_type}") from None
        return await executor(job_id, environment)

    # =========================================================================
    # State helpers
    # =========================================================================

    async def _set_state(self, job_id: str, **values: Any) -> None:
        async with self.scope_factory() as repo:
            await repo.update_job(job_id, values)

    async def _append_log(self, job_id: str, level: str, message: str) -> None:
        async with self.scope_factory() as repo:
            row = await repo.get_job(job_id)
            previous = row.get("logs") if row else None
            logs = [*(previous if isinstance(previous, list) else [])]
            logs.append({"at": now_iso(), "level": level, "message": message})
            await repo.update_job(job_id, {"logs": logs[-self.config.job_log_limit :]})

    async def _audit(
        self,
        actor_user_id: str | None,
        environment: str,
        event_type: str,
        job_id: str,
        metadata: dict[str, Any],
    ) -> None:
        async with self.scope_factory() as repo:
            await ControlPlaneService(repo).write_audit(
                actor_user_id=actor_user_id,
                environment=environment,
                event_type=event_type,
                target_type="admin_job",
                target_id=job_id,
                metadata=metadata,
            )

    # =========================================================================
    # Job types
    # =========================================================================

    async def _run_cleanup(self, job_id: str, environment: str) -> dict[str, Any]:
        days = self.config.stale_job_days
        await self._append_log(job_id, "info", f"Scanning stale failed jobs older than {days} days")

        threshold = datetime.now(UTC) - timedelta(days=days)
        async with self.scope_factory() as repo:
            stale_ids = await repo.find_stale_failed_jobs(threshold, STALE_JOB_SCAN_LIMIT)
        await self._set_state(job_id, progress=45)

        async with self.scope_factory() as repo:
            await repo.delete_jobs(stale_ids)

        await self._append_log(
            job_id, "info", f"Cleanup removed {len(stale_ids)} stale failed jobs"
        )
        return {"removed_jobs": len(stale_ids)}

    async def _recompute_scores(self, job_id: str, environment: str) -> dict[str, Any]:
        await self._append_log(job_id, "info", "Recomputing compliance scores")
        outcome = await self.score_refresh()
        await self._set_state(job_id, progress=80)

        for error in outcome.errors:
            await self._append_log(job_id, "warn", error)
        await self._append_log(
            job_id, "info", f"Refreshed scores for {outcome.triggers} organizations"
        )
        return {"organizations_refreshed": outcome.triggers, "errors": len(outcome.errors)}

    async def _regenerate_trust_packet(self, job_id: str, environment: str) -> dict[str, Any]:
        await self._append_log(job_id, "info", "Regenerating trust-packet readiness marker")
        await self._set_state(job_id, progress=40)

        timestamp = now_iso()
        async with self.scope_factory() as repo:
            await repo.upsert_system_setting(
                {
                    "environment": environment,
                    "category": "ops",
                    "setting_key": "trust_packet_last_regenerated_at",
                    "value": {"at": timestamp},
                }
            )

        await self._append_log(job_id, "info", f"Trust packet marker updated at {timestamp}")
        return {"regenerated_at": timestamp}

    async def _warm_cdn(self, job_id: str, environment: str) -> dict[str, Any]:
        await self._append_log(job_id, "info", "Warming CDN edges for app + site")
        urls = [url for url in (self.config.site_url, self.config.app_url) if url]

        probes = []
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.probe_timeout_seconds),
            follow_redirects=True,
            headers={"Cache-Control": "no-store"},
            transport=self.http_transport,
        ) as client:
            for url in urls:
                probes.append(await self._probe(client, url))

        await self._set_state(job_id, progress=75)
        await self._append_log(job_id, "info", "CDN warm-up probe complete")
        return {"probes": probes}

    async def _probe(self, client: httpx.AsyncClient, url: str) -> dict[str, Any]:
        try:
            response = await _head(client, url)
        except httpx.HTTPError as e:
            logger.warning("cdn_probe_failed", url=url, error=str(e))
            return {"url": url, "ok": False, "status": None}
        return {"url": url, "ok": response.is_success, "status": response.status_code}
