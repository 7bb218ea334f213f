"""Background worker that keeps every workspace's projection horizon populated."""

import asyncio
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from fortuna.config import Settings, bind_workspace, get_settings
from fortuna.events import (
    EventPublisher,
    ProjectionEvent,
    sync_completed,
    worker_started,
    worker_stopped,
)
from fortuna.projections import (
    DEFAULT_PROJECTION_MONTHS,
    ProjectionGenerator,
    ProjectionRunResult,
    normalize_months_ahead,
)
from fortuna.stores.base import WorkspaceDirectory

logger = structlog.get_logger(__name__)

DEFAULT_SYNC_INTERVAL = timedelta(hours=1)


@dataclass(frozen=True)
class ProjectionWorkerConfig:
    """Tick period and horizon for the projection worker."""

    interval: timedelta = DEFAULT_SYNC_INTERVAL
    months_ahead: int = DEFAULT_PROJECTION_MONTHS

    def normalized(self) -> "ProjectionWorkerConfig":
        """Replace non-positive values with the defaults (1 hour, 12 months)."""
        interval = self.interval if self.interval > timedelta(0) else DEFAULT_SYNC_INTERVAL
        return ProjectionWorkerConfig(
            interval=interval,
            months_ahead=normalize_months_ahead(self.months_ahead),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProjectionWorkerConfig":
        settings = settings or get_settings()
        return cls(
            interval=timedelta(seconds=settings.projection_interval_seconds),
            months_ahead=settings.projection_months_ahead,
        ).normalized()


class ProjectionWorker:
    """Periodically generates projections for all workspaces.

    The worker:
    1. Syncs every workspace immediately on start, then once per interval
    2. Runs as a single asyncio task; that task's liveness is the running state
    3. Stops on stop() or when the shutdown event passed to start() is set
    4. Logs per-workspace failures and moves on to the next workspace
    """

    def __init__(
        self,
        generator: ProjectionGenerator,
        workspaces: WorkspaceDirectory,
        config: ProjectionWorkerConfig | None = None,
        publisher: EventPublisher | None = None,
    ):
        self._generator = generator
        self._workspaces = workspaces
        self._config = (config or ProjectionWorkerConfig.from_settings()).normalized()
        self._publisher = publisher

        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._sync_count = 0
        self._last_sync_at: datetime | None = None

        self._logger = logger.bind(component="projection_worker")

    @property
    def interval(self) -> timedelta:
        return self._config.interval

    @property
    def months_ahead(self) -> int:
        return self._config.months_ahead

    @property
    def is_running(self) -> bool:
        """Check if the background loop is alive."""
        return self._task is not None and not self._task.done()

    @property
    def sync_count(self) -> int:
        """Number of scheduled syncs started since construction."""
        return self._sync_count

    def start(self, shutdown: asyncio.Event | None = None) -> None:
        """Start the background loop; a no-op if it is already running.

        Must be called from within a running event loop.

        Args:
            shutdown: Optional external signal; setting it stops the worker
                exactly like stop() would.
        """
        if self.is_running:
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event, shutdown), name="projection-worker"
        )

        self._logger.info(
            "projection_worker_started",
            interval_seconds=self._config.interval.total_seconds(),
            months_ahead=self._config.months_ahead,
        )
        self._publish(
            worker_started(self._config.interval.total_seconds(), self._config.months_ahead)
        )

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish. Safe to call repeatedly."""
        task = self._task
        if task is None or task.done():
            return

        self._logger.info("stopping_projection_worker")
        if self._stop_event is not None:
            self._stop_event.set()
        # Shield so a cancelled caller does not cancel the loop mid-sync
        await asyncio.shield(task)

    async def wait_stopped(self) -> None:
        """Wait until the loop exits, whatever stops it."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def sync_workspace(self, workspace_id: int) -> ProjectionRunResult:
        """Generate projections for one workspace right now, outside the timer."""
        self._logger.debug("manual_projection_sync", workspace_id=workspace_id)
        return await self._generator.generate_projections(
            workspace_id, self._config.months_ahead
        )

    def get_status(self) -> dict[str, Any]:
        """Get current worker status."""
        return {
            "is_running": self.is_running,
            "interval_seconds": self._config.interval.total_seconds(),
            "months_ahead": self._config.months_ahead,
            "sync_count": self._sync_count,
            "last_sync_at": self._last_sync_at.isoformat() if self._last_sync_at else None,
        }

    # === Loop ===

    @staticmethod
    def _signalled(stop_event: asyncio.Event, shutdown: asyncio.Event | None) -> bool:
        return stop_event.is_set() or (shutdown is not None and shutdown.is_set())

    async def _run(self, stop_event: asyncio.Event, shutdown: asyncio.Event | None) -> None:
        reason = "stopped"
        try:
            while not self._signalled(stop_event, shutdown):
                await self._sync_all_workspaces(stop_event, shutdown)
                if await self._wait_for_signal(stop_event, shutdown):
                    break
            if shutdown is not None and shutdown.is_set():
                reason = "shutdown"
        except asyncio.CancelledError:
            reason = "cancelled"
            raise
        finally:
            self._logger.info("projection_worker_stopped", reason=reason)
            self._publish(worker_stopped(reason))

    async def _wait_for_signal(
        self, stop_event: asyncio.Event, shutdown: asyncio.Event | None
    ) -> bool:
        """Sleep for one interval; return True early if a stop signal arrives."""
        waiters = [asyncio.ensure_future(stop_event.wait())]
        if shutdown is not None:
            waiters.append(asyncio.ensure_future(shutdown.wait()))
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self._config.interval.total_seconds(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
        return bool(done)

    async def _sync_all_workspaces(
        self, stop_event: asyncio.Event, shutdown: asyncio.Event | None
    ) -> None:
        self._sync_count += 1
        self._last_sync_at = datetime.now(UTC)
        started = time.monotonic()
        self._logger.debug("projection_sync_starting")

        try:
            workspace_ids = await self._workspaces.list_all_workspace_ids()
        except Exception as e:
            self._logger.error("workspace_listing_failed", error=str(e))
            return

        totals = ProjectionRunResult()
        failed = 0
        timeout = self._config.interval.total_seconds()

        for workspace_id in workspace_ids:
            if self._signalled(stop_event, shutdown):
                self._logger.info("projection_sync_interrupted", workspace_id=workspace_id)
                return

            try:
                result = await self._sync_interruptibly(workspace_id, stop_event, shutdown)
            except TimeoutError:
                self._logger.error(
                    "workspace_sync_timed_out", workspace_id=workspace_id, timeout=timeout
                )
                failed += 1
                continue
            except Exception as e:
                self._logger.error(
                    "workspace_sync_failed", workspace_id=workspace_id, error=str(e)
                )
                failed += 1
                continue

            if result is None:
                self._logger.info("projection_sync_interrupted", workspace_id=workspace_id)
                return

            totals.merge(result)
            if result.generated > 0:
                self._logger.debug(
                    "workspace_projections_generated",
                    workspace_id=workspace_id,
                    generated=result.generated,
                    skipped=result.skipped,
                )

        elapsed = time.monotonic() - started
        errors = failed + len(totals.errors)
        self._logger.info(
            "projection_sync_completed",
            workspaces=len(workspace_ids),
            total_generated=totals.generated,
            total_skipped=totals.skipped,
            total_errors=errors,
            elapsed=round(elapsed, 3),
        )
        self._publish(
            sync_completed(len(workspace_ids), totals.generated, totals.skipped, errors, elapsed)
        )

    async def _sync_interruptibly(
        self,
        workspace_id: int,
        stop_event: asyncio.Event,
        shutdown: asyncio.Event | None,
    ) -> ProjectionRunResult | None:
        """Generate one workspace, racing the run against the stop signals.

        Returns None when a signal arrives first; the in-flight generation is
        cancelled. Raises TimeoutError when the interval elapses first.
        """
        with bind_workspace(workspace_id):
            sync = asyncio.ensure_future(
                self._generator.generate_projections(workspace_id, self._config.months_ahead)
            )
        waiters = [asyncio.ensure_future(stop_event.wait())]
        if shutdown is not None:
            waiters.append(asyncio.ensure_future(shutdown.wait()))

        try:
            done, _ = await asyncio.wait(
                [sync, *waiters],
                timeout=self._config.interval.total_seconds(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()
            if not sync.done():
                sync.cancel()
                await asyncio.wait([sync])

        if sync in done:
            return sync.result()
        if self._signalled(stop_event, shutdown):
            return None
        raise TimeoutError

    def _publish(self, event: ProjectionEvent) -> None:
        if self._publisher is not None:
            self._publisher.publish(event)
