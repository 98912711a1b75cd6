"""
Tests for the background job registry.
"""

from unittest.mock import AsyncMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from app.core import scheduler


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    monkeypatch.setattr(scheduler, "_job_registry", {})
    monkeypatch.setattr(scheduler, "_scheduler", None)


class TestRegistry:
    def test_registered_job_is_listed_unscheduled(self):
        scheduler.register_job("report", AsyncMock(), IntervalTrigger(hours=24))

        assert scheduler.list_registered_jobs() == [
            {"job_id": "report", "scheduled": False, "next_run_time": None}
        ]

    @pytest.mark.asyncio
    async def test_start_schedules_jobs_registered_earlier(self):
        scheduler.register_job("report", AsyncMock(), IntervalTrigger(hours=24))

        await scheduler.start_scheduler()
        try:
            jobs = scheduler.list_registered_jobs()
            assert jobs[0]["scheduled"] is True
            assert jobs[0]["next_run_time"] is not None
        finally:
            await scheduler.stop_scheduler()

        assert scheduler.get_scheduler() is None


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_success_returns_job_result(self):
        job = AsyncMock(return_value={"emails_sent": 2})
        scheduler.register_job("report", job, IntervalTrigger(hours=24))

        result = await scheduler.trigger_job_manually("report")

        assert result["status"] == "success"
        assert result["result"] == {"emails_sent": 2}
        job.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_reported(self):
        job = AsyncMock(side_effect=RuntimeError("db down"))
        scheduler.register_job("report", job, IntervalTrigger(hours=24))

        result = await scheduler.trigger_job_manually("report")

        assert result["status"] == "error"
        assert result["error"] == "db down"

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        with pytest.raises(KeyError):
            await scheduler.trigger_job_manually("missing")
