"""Tests for the ProjectionWorker."""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from fortuna.config import Settings
from fortuna.events import EventPublisher, EventType
from fortuna.projections import ProjectionGenerator, ProjectionRunResult
from fortuna.stores import InMemoryWorkspaceDirectory
from fortuna.templates import RecurringTemplateService, UpdateTemplateInput
from fortuna.worker import DEFAULT_SYNC_INTERVAL, ProjectionWorker, ProjectionWorkerConfig

WORKSPACE_ID = 1

FAST = ProjectionWorkerConfig(interval=timedelta(milliseconds=100), months_ahead=3)
SLOW = ProjectionWorkerConfig(interval=timedelta(hours=1), months_ahead=3)


def _mock_generator(side_effect=None) -> MagicMock:
    generator = MagicMock(spec=ProjectionGenerator)
    generator.generate_projections = AsyncMock(
        return_value=ProjectionRunResult(generated=1), side_effect=side_effect
    )
    return generator


class TestProjectionWorkerConfig:
    """Tests for worker configuration."""

    def test_defaults(self):
        config = ProjectionWorkerConfig()

        assert config.interval == timedelta(hours=1)
        assert config.months_ahead == 12

    def test_non_positive_values_fall_back_to_defaults(self):
        """Test zero interval and negative horizon are replaced on construction."""
        worker = ProjectionWorker(
            _mock_generator(),
            InMemoryWorkspaceDirectory(),
            config=ProjectionWorkerConfig(interval=timedelta(0), months_ahead=-1),
        )

        assert worker.interval == DEFAULT_SYNC_INTERVAL
        assert worker.months_ahead == 12

    def test_from_settings(self):
        settings = Settings(PROJECTION_INTERVAL_SECONDS=90, PROJECTION_MONTHS_AHEAD=6)

        config = ProjectionWorkerConfig.from_settings(settings)

        assert config.interval == timedelta(seconds=90)
        assert config.months_ahead == 6

    def test_from_settings_normalizes(self):
        settings = Settings(PROJECTION_INTERVAL_SECONDS=-5, PROJECTION_MONTHS_AHEAD=0)

        config = ProjectionWorkerConfig.from_settings(settings)

        assert config == ProjectionWorkerConfig()


class TestProjectionWorkerLifecycle:
    """Tests for start/stop behaviour."""

    def test_not_running_before_start(self):
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)

        assert worker.is_running is False
        assert worker.sync_count == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        """Test worker syncs immediately on start and stops cleanly."""
        generator = _mock_generator()
        worker = ProjectionWorker(
            generator, InMemoryWorkspaceDirectory([WORKSPACE_ID]), config=SLOW
        )

        worker.start()
        await asyncio.sleep(0.05)

        assert worker.is_running is True
        generator.generate_projections.assert_awaited_once_with(WORKSPACE_ID, 3)

        await worker.stop()

        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_start_twice_runs_single_loop(self):
        workspaces = MagicMock()
        workspaces.list_all_workspace_ids = AsyncMock(return_value=[])
        worker = ProjectionWorker(_mock_generator(), workspaces, config=SLOW)

        worker.start()
        worker.start()
        await asyncio.sleep(0.05)

        assert workspaces.list_all_workspace_ids.await_count == 1
        assert worker.sync_count == 1

        await worker.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)

        await worker.stop()
        await worker.wait_stopped()

        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_concurrent_stops(self):
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)
        worker.start()
        await asyncio.sleep(0.01)

        await asyncio.gather(worker.stop(), worker.stop())

        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_stop_interrupts_long_wait(self):
        """Test stop returns promptly even with an hour-long interval."""
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)
        worker.start()
        await asyncio.sleep(0.01)

        await asyncio.wait_for(worker.stop(), timeout=1.0)

        assert worker.is_running is False

    @pytest.mark.asyncio
    async def test_shutdown_event_stops_worker(self):
        publisher = EventPublisher()
        worker = ProjectionWorker(
            _mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW, publisher=publisher
        )
        shutdown = asyncio.Event()

        worker.start(shutdown)
        await asyncio.sleep(0.01)
        shutdown.set()
        await asyncio.wait_for(worker.wait_stopped(), timeout=1.0)

        assert worker.is_running is False
        stopped = publisher.recent_events[-1]
        assert stopped.event_type == EventType.WORKER_STOPPED
        assert stopped.data == {"reason": "shutdown"}

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)

        worker.start()
        await asyncio.sleep(0.01)
        await worker.stop()
        worker.start()
        await asyncio.sleep(0.01)

        assert worker.is_running is True
        assert worker.sync_count == 2

        await worker.stop()

    @pytest.mark.asyncio
    async def test_ticks_repeatedly(self):
        worker = ProjectionWorker(
            _mock_generator(), InMemoryWorkspaceDirectory([WORKSPACE_ID]), config=FAST
        )

        worker.start()
        await asyncio.sleep(0.35)
        await worker.stop()

        assert worker.sync_count >= 2


class TestProjectionWorkerSync:
    """Tests for per-workspace sync behaviour."""

    @pytest.mark.asyncio
    async def test_sync_workspace_uses_real_generator(self, generator, make_template):
        make_template()
        worker = ProjectionWorker(generator, InMemoryWorkspaceDirectory(), config=SLOW)

        result = await worker.sync_workspace(WORKSPACE_ID)

        assert result.generated == 3

    @pytest.mark.asyncio
    async def test_sync_workspace_propagates_errors(self):
        worker = ProjectionWorker(
            _mock_generator(side_effect=RuntimeError("boom")),
            InMemoryWorkspaceDirectory(),
            config=SLOW,
        )

        with pytest.raises(RuntimeError):
            await worker.sync_workspace(WORKSPACE_ID)

    @pytest.mark.asyncio
    async def test_failing_workspace_does_not_stop_others(self):
        """Test one workspace's failure is logged and the rest still sync."""

        async def fake_generate(workspace_id, months_ahead):
            if workspace_id == 1:
                raise RuntimeError("db down")
            return ProjectionRunResult(generated=2)

        generator = _mock_generator(side_effect=fake_generate)
        publisher = EventPublisher()
        worker = ProjectionWorker(
            generator, InMemoryWorkspaceDirectory([1, 2, 3]), config=SLOW, publisher=publisher
        )

        worker.start()
        await asyncio.sleep(0.05)

        assert worker.is_running is True
        called = [c.args[0] for c in generator.generate_projections.await_args_list]
        assert called == [1, 2, 3]

        await worker.stop()

        completed = [
            e for e in publisher.recent_events if e.event_type == EventType.SYNC_COMPLETED
        ]
        assert completed[0].data["workspaces"] == 3
        assert completed[0].data["generated"] == 4
        assert completed[0].data["errors"] == 1

    @pytest.mark.asyncio
    async def test_workspace_listing_failure_keeps_worker_alive(self):
        workspaces = MagicMock()
        workspaces.list_all_workspace_ids = AsyncMock(side_effect=ConnectionError("db down"))
        worker = ProjectionWorker(_mock_generator(), workspaces, config=FAST)

        worker.start()
        await asyncio.sleep(0.25)

        assert worker.is_running is True
        assert worker.sync_count >= 2

        await worker.stop()

    @pytest.mark.asyncio
    async def test_slow_workspace_times_out(self):
        async def fake_generate(workspace_id, months_ahead):
            if workspace_id == 1:
                await asyncio.sleep(10)
            return ProjectionRunResult(generated=1)

        generator = _mock_generator(side_effect=fake_generate)
        worker = ProjectionWorker(
            generator,
            InMemoryWorkspaceDirectory([1, 2]),
            config=ProjectionWorkerConfig(interval=timedelta(milliseconds=50), months_ahead=3),
        )

        worker.start()
        await asyncio.sleep(0.2)
        await worker.stop()

        called = [c.args[0] for c in generator.generate_projections.await_args_list]
        assert 2 in called

    @pytest.mark.asyncio
    async def test_lifecycle_events(self):
        publisher = EventPublisher()
        worker = ProjectionWorker(
            _mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW, publisher=publisher
        )

        worker.start()
        await asyncio.sleep(0.01)
        await worker.stop()

        types = [e.event_type for e in publisher.recent_events]
        assert types == [
            EventType.WORKER_STARTED,
            EventType.SYNC_COMPLETED,
            EventType.WORKER_STOPPED,
        ]
        assert publisher.recent_events[0].data == {"interval_seconds": 3600.0, "months_ahead": 3}
        assert publisher.recent_events[-1].data == {"reason": "stopped"}

    @pytest.mark.asyncio
    async def test_get_status(self):
        worker = ProjectionWorker(_mock_generator(), InMemoryWorkspaceDirectory(), config=SLOW)

        status = worker.get_status()
        assert status == {
            "is_running": False,
            "interval_seconds": 3600.0,
            "months_ahead": 3,
            "sync_count": 0,
            "last_sync_at": None,
        }

        worker.start()
        await asyncio.sleep(0.01)
        status = worker.get_status()
        await worker.stop()

        assert status["is_running"] is True
        assert status["sync_count"] == 1
        assert status["last_sync_at"] is not None

    @pytest.mark.asyncio
    async def test_sync_trims_rows_past_shortened_end_date(
        self, generator, make_template, template_store, account_directory, transaction_store
    ):
        """Test a sync after an end-date edit leaves nothing dated past it."""
        service = RecurringTemplateService(
            template_store, account_directory, today=lambda: date(2025, 6, 15)
        )
        template = make_template(account_id=10)
        worker = ProjectionWorker(
            generator,
            InMemoryWorkspaceDirectory([WORKSPACE_ID]),
            config=ProjectionWorkerConfig(interval=timedelta(hours=1), months_ahead=12),
        )
        await worker.sync_workspace(WORKSPACE_ID)
        assert len(transaction_store.transactions) == 12

        await service.update(
            WORKSPACE_ID,
            template.id,
            UpdateTemplateInput(
                name=template.name,
                amount=template.amount,
                account_id=template.account_id,
                type=template.type,
                due_day=template.due_day,
                start_date=template.start_date,
                end_date=date(2025, 8, 31),
            ),
        )
        await worker.sync_workspace(WORKSPACE_ID)

        dates = [t.transaction_date for t in transaction_store.transactions]
        assert dates == [date(2025, 6, 15), date(2025, 7, 15), date(2025, 8, 15)]


class TestProjectionWorkerInterruption:
    """Tests for stopping while a workspace sync is in flight."""

    @staticmethod
    def _hung_generator():
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def hang(workspace_id, months_ahead):
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return ProjectionRunResult()

        return _mock_generator(side_effect=hang), started, cancelled

    @pytest.mark.asyncio
    async def test_stop_cancels_running_sync(self):
        """Test stop returns promptly and cancels a sync that never finishes."""
        generator, started, cancelled = self._hung_generator()
        publisher = EventPublisher()
        worker = ProjectionWorker(
            generator, InMemoryWorkspaceDirectory([1, 2]), config=SLOW, publisher=publisher
        )

        worker.start()
        await asyncio.wait_for(started.wait(), timeout=1.0)
        await asyncio.wait_for(worker.stop(), timeout=0.5)

        assert worker.is_running is False
        assert cancelled.is_set()
        assert generator.generate_projections.await_count == 1
        types = [e.event_type for e in publisher.recent_events]
        assert EventType.SYNC_COMPLETED not in types

    @pytest.mark.asyncio
    async def test_shutdown_event_cancels_running_sync(self):
        generator, started, cancelled = self._hung_generator()
        publisher = EventPublisher()
        worker = ProjectionWorker(
            generator, InMemoryWorkspaceDirectory([1]), config=SLOW, publisher=publisher
        )
        shutdown = asyncio.Event()

        worker.start(shutdown)
        await asyncio.wait_for(started.wait(), timeout=1.0)
        shutdown.set()
        await asyncio.wait_for(worker.wait_stopped(), timeout=0.5)

        assert cancelled.is_set()
        assert publisher.recent_events[-1].data == {"reason": "shutdown"}
