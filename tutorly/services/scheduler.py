"""
APScheduler Configuration

Runs the session lifecycle's periodic jobs inside the API process:

    - session_expiry:     every 5 minutes   (cancel abandoned scheduled sessions)
    - session_completion: every 10 minutes  (complete overrunning sessions)
    - reminder_24h:       hourly at :00     (24-hour lookahead reminders)
    - reminder_1h:        every 10 minutes  (1-hour lookahead reminders)
    - enrollment_expiry:  daily at 00:00    (invalidate month-old enrollments)

Every job is wrapped in a SingleFlightJob: a tick that arrives while the previous run is
still in flight is skipped and counted, never queued. Manual triggers go through the same
wrapper.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from tutorly import config
from tutorly.services.enrollment_sweep import get_enrollment_sweep
from tutorly.services.reminders import get_reminder_service, reminder_text
from tutorly.services.session_sweeps import get_session_sweeps
from tutorly.services.time_slots import get_business_timezone, utcnow

logger = logging.getLogger(__name__)


class JobState:
    IDLE = "idle"
    RUNNING = "running"


class JobAlreadyRunning(Exception):
    """Raised to manual callers when the job is mid-run"""


class SingleFlightJob:
    """Run an async callable at most once at a time, skipping overlapping ticks"""

    def __init__(self, job_id: str, name: str, func: Callable[[], Awaitable[Any]]):
        self.job_id = job_id
        self.name = name
        self.func = func
        self.state = JobState.IDLE
        self.runs = 0
        self.skipped_runs = 0
        self.last_started_at = None
        self.last_finished_at = None
        self.last_error: Optional[str] = None
        self.last_result: Any = None

    @property
    def running(self) -> bool:
        return self.state == JobState.RUNNING

    async def run(self) -> Any:
        """
        Execute one run.

        Raises JobAlreadyRunning if a run is in flight. Errors from the job propagate
        after being recorded.
        """
        if self.running:
            self.skipped_runs += 1
            logger.warning(f"Skipping '{self.job_id}': previous run still in progress")
            raise JobAlreadyRunning(self.job_id)

        self.state = JobState.RUNNING
        self.last_started_at = utcnow()
        try:
            result = await self.func()
        except Exception as e:
            self.last_error = str(e)
            raise
        else:
            self.runs += 1
            self.last_error = None
            self.last_result = result
            return result
        finally:
            self.last_finished_at = utcnow()
            self.state = JobState.IDLE

    async def tick(self) -> None:
        """Scheduler entry point; failures are logged so the scheduler keeps running"""
        logger.info(f"Starting scheduled job '{self.job_id}'")
        try:
            await self.run()
        except JobAlreadyRunning:
            return
        except Exception as e:
            logger.error(f"Scheduled job '{self.job_id}' failed: {e}", exc_info=True)

    def status(self) -> Dict[str, Any]:
        return {
            "id": self.job_id,
            "name": self.name,
            "state": self.state,
            "runs": self.runs,
            "skipped_runs": self.skipped_runs,
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_error": self.last_error,
        }


def _summarize(result: Any) -> Any:
    return result.to_dict() if hasattr(result, "to_dict") else result


async def expire_sessions():
    """Cancel scheduled sessions whose grace period has passed"""
    result = await get_session_sweeps().run_expiry_sweep()
    logger.info(f"Expired {result.count} session(s)")
    return _summarize(result)


async def complete_sessions():
    """Complete ongoing sessions past the duration ceiling"""
    result = await get_session_sweeps().run_completion_sweep()
    logger.info(f"Auto-completed {result.count} session(s)")
    return _summarize(result)


async def send_reminders(hours_ahead: int):
    result = await get_reminder_service().run(hours_ahead)
    return _summarize(result)


async def send_24h_reminders():
    return await send_reminders(24)


async def send_1h_reminders():
    return await send_reminders(1)


async def expire_enrollments():
    """Invalidate enrollments older than one month"""
    count = await get_enrollment_sweep().run()
    return {"invalidatedCount": count}


JOBS: Dict[str, SingleFlightJob] = {
    job.job_id: job
    for job in (
        SingleFlightJob("session_expiry", "Expire Abandoned Sessions", expire_sessions),
        SingleFlightJob("session_completion", "Complete Overrunning Sessions", complete_sessions),
        SingleFlightJob("reminder_24h", "Send 24-Hour Reminders", send_24h_reminders),
        SingleFlightJob("reminder_1h", "Send 1-Hour Reminders", send_1h_reminders),
        SingleFlightJob("enrollment_expiry", "Expire Monthly Enrollments", expire_enrollments),
    )
}

REMINDER_JOB_IDS = {24: "reminder_24h", 1: "reminder_1h"}

# Global scheduler instance
scheduler = AsyncIOScheduler(timezone=get_business_timezone())


def _triggers() -> Dict[str, Any]:
    tz = get_business_timezone()
    return {
        "session_expiry": IntervalTrigger(minutes=config.EXPIRY_CHECK_INTERVAL_MINUTES, timezone=tz),
        "session_completion": IntervalTrigger(minutes=config.COMPLETION_CHECK_INTERVAL_MINUTES, timezone=tz),
        "reminder_24h": CronTrigger(minute=0, timezone=tz),  # Every hour at :00
        "reminder_1h": CronTrigger(minute="*/10", timezone=tz),  # Every 10 minutes
        "enrollment_expiry": CronTrigger(hour=0, minute=0, timezone=tz),  # Daily at midnight
    }


def configure_scheduler():
    """Register every job with its trigger"""
    triggers = _triggers()
    for job_id, job in JOBS.items():
        scheduler.add_job(
            job.tick,
            trigger=triggers[job_id],
            id=job_id,
            name=job.name,
            replace_existing=True,
            coalesce=True,  # Combine missed runs into single execution
            max_instances=1,  # Only one instance at a time
        )

    logger.info(f"Scheduler configured with {len(JOBS)} jobs in {config.BUSINESS_TIMEZONE}")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")


async def run_job(job_id: str):
    """
    Run a job immediately, outside its schedule.

    Raises KeyError for an unknown job and JobAlreadyRunning if it is mid-run.
    """
    job = JOBS[job_id]
    logger.info(f"Manually triggering job '{job_id}'")
    return await job.run()


async def trigger_reminder(hours_ahead: int):
    """Run the reminder cadence for `hours_ahead` now (24 or 1)"""
    reminder_text(hours_ahead)
    return await run_job(REMINDER_JOB_IDS[hours_ahead])


def get_scheduler_status() -> Dict[str, Any]:
    jobs: List[Dict[str, Any]] = []
    for job_id, job in JOBS.items():
        entry = job.status()
        scheduled = scheduler.get_job(job_id) if scheduler.running else None
        next_run = getattr(scheduled, "next_run_time", None) if scheduled else None
        entry["next_run_time"] = next_run.isoformat() if next_run else None
        jobs.append(entry)

    return {
        "running": scheduler.running,
        "timezone": config.BUSINESS_TIMEZONE,
        "jobs": jobs,
    }
