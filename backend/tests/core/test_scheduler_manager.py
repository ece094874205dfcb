"""Tests for SchedulerManager.

Tests cover:
- Disabled scheduler reports not_initialized and accepts no jobs
- Interval jobs are registered and replaced by id
- Start, health and stop lifecycle
"""

from types import SimpleNamespace

import pytest

from tubeflow.core import scheduler as scheduler_module
from tubeflow.core.scheduler import SchedulerManager, SchedulerState


def use_settings(monkeypatch: pytest.MonkeyPatch, enabled: bool) -> None:
    settings = SimpleNamespace(scheduler_enabled=enabled, scheduler_misfire_grace_time=60)
    monkeypatch.setattr(scheduler_module, "get_settings", lambda: settings)


async def tick() -> None:
    return None


class TestDisabledScheduler:
    def test_init_returns_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        use_settings(monkeypatch, enabled=False)
        manager = SchedulerManager()

        assert manager.init_scheduler() is False
        assert manager.start() is False
        assert manager.add_interval_job(tick, id="poller", seconds=30) is None

    def test_health_not_initialized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        use_settings(monkeypatch, enabled=False)
        manager = SchedulerManager()

        health = manager.check_health()

        assert health["status"] == "not_initialized"
        assert health["running"] is False
        assert health["job_count"] == 0


class TestEnabledScheduler:
    @pytest.mark.asyncio
    async def test_lifecycle(self, monkeypatch: pytest.MonkeyPatch) -> None:
        use_settings(monkeypatch, enabled=True)
        manager = SchedulerManager()

        assert manager.init_scheduler() is True
        assert manager.add_interval_job(tick, id="poller", seconds=30, name="Poller") == "poller"
        # Same id replaces the job
        manager.add_interval_job(tick, id="poller", seconds=60, name="Poller")

        assert manager.start() is True
        try:
            assert manager.state == SchedulerState.RUNNING
            jobs = manager.get_jobs()
            assert [job.id for job in jobs] == ["poller"]
            assert jobs[0].next_run_time is not None

            health = manager.check_health()
            assert health["status"] == "ok"
            assert health["job_count"] == 1
        finally:
            manager.stop()

        assert manager.state == SchedulerState.STOPPED
        assert manager.get_jobs() == []

    def test_stop_without_start(self, monkeypatch: pytest.MonkeyPatch) -> None:
        use_settings(monkeypatch, enabled=True)
        manager = SchedulerManager()
        manager.init_scheduler()

        manager.stop()

        assert manager.state == SchedulerState.STOPPED
        assert manager.check_health()["status"] == "not_initialized"
