"""
Unit tests for the scheduler wrapper

Tests the single-flight guard, status reporting and manual triggers.
"""

import asyncio

import pytest

from tutorly.services import scheduler as job_scheduler
from tutorly.services.scheduler import JobAlreadyRunning, JobState, SingleFlightJob


class TestSingleFlightJob:
    """A tick arriving mid-run is skipped, never queued"""

    async def test_overlapping_run_is_skipped(self):
        release = asyncio.Event()
        calls = []

        async def slow_job():
            calls.append("run")
            await release.wait()
            return {"done": True}

        job = SingleFlightJob("slow", "Slow Job", slow_job)
        first = asyncio.create_task(job.run())
        await asyncio.sleep(0)

        assert job.state == JobState.RUNNING

        with pytest.raises(JobAlreadyRunning):
            await job.run()
        await job.tick()

        release.set()
        assert await first == {"done": True}

        assert calls == ["run"], "Overlapping ticks must not start a second run"
        assert job.skipped_runs == 2
        assert job.runs == 1
        assert job.state == JobState.IDLE

    async def test_failure_is_recorded_and_guard_released(self):
        async def broken_job():
            raise RuntimeError("database unavailable")

        job = SingleFlightJob("broken", "Broken Job", broken_job)

        with pytest.raises(RuntimeError):
            await job.run()

        assert job.last_error == "database unavailable"
        assert job.state == JobState.IDLE
        assert job.last_finished_at is not None

    async def test_tick_swallows_job_errors(self):
        async def broken_job():
            raise RuntimeError("boom")

        job = SingleFlightJob("broken", "Broken Job", broken_job)
        await job.tick()

        assert job.last_error == "boom"


class TestSchedulerStatus:
    def test_lists_every_job(self):
        status = job_scheduler.get_scheduler_status()

        assert {job["id"] for job in status["jobs"]} == {
            "session_expiry",
            "session_completion",
            "reminder_24h",
            "reminder_1h",
            "enrollment_expiry",
        }
        assert status["running"] is False

    def test_triggers_use_business_timezone(self):
        triggers = job_scheduler._triggers()

        assert str(triggers["reminder_1h"].timezone) == "Asia/Colombo"
        assert triggers["session_expiry"].interval.total_seconds() == 5 * 60


class TestManualTriggers:
    async def test_trigger_reminder_runs_cadence(self, monkeypatch):
        seen = []

        class StubReminders:
            async def run(self, hours_ahead):
                seen.append(hours_ahead)
                return {"hours_ahead": hours_ahead}

        monkeypatch.setattr(job_scheduler, "get_reminder_service", lambda: StubReminders())

        assert await job_scheduler.trigger_reminder(1) == {"hours_ahead": 1}
        assert seen == [1]

    async def test_unsupported_cadence(self):
        with pytest.raises(ValueError):
            await job_scheduler.trigger_reminder(12)
