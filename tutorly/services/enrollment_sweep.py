"""
Enrollment Expiry Sweep

Class enrollments are paid monthly. Once a day, enrollments created more than one
calendar month ago are marked invalid so their students stop receiving class reminders.
"""
import calendar
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from tutorly.database import AsyncSessionLocal
from tutorly.errors import PersistenceFailure
from tutorly.models import Enrollment, EnrollmentStatus
from tutorly.services.time_slots import utcnow

logger = logging.getLogger(__name__)


def one_month_before(instant: datetime) -> datetime:
    """Same day-of-month one month earlier, clamped to the end of shorter months"""
    year, month = (instant.year, instant.month - 1) if instant.month > 1 else (instant.year - 1, 12)
    day = min(instant.day, calendar.monthrange(year, month)[1])
    return instant.replace(year=year, month=month, day=day)


class EnrollmentSweepService:
    def __init__(self, session_factory=None, clock: Callable = utcnow):
        self.session_factory = session_factory or AsyncSessionLocal
        self.clock = clock

    async def run(self) -> int:
        """Invalidate expired enrollments; returns how many were updated"""
        cutoff = one_month_before(self.clock())

        async with self.session_factory() as db:
            try:
                result = await db.execute(
                    update(Enrollment)
                    .where(Enrollment.created_at < cutoff, Enrollment.status != EnrollmentStatus.INVALID)
                    .values(status=EnrollmentStatus.INVALID)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Enrollment expiry sweep failed: {e}", exc_info=True)
                raise PersistenceFailure("Enrollment expiry sweep failed") from e

        count = result.rowcount or 0
        logger.info(f"Enrollment expiry sweep: {count} enrollment(s) marked invalid")
        return count


# Singleton instance
_enrollment_sweep_instance: Optional[EnrollmentSweepService] = None


def get_enrollment_sweep() -> EnrollmentSweepService:
    """Get singleton instance of EnrollmentSweepService"""
    global _enrollment_sweep_instance
    if _enrollment_sweep_instance is None:
        _enrollment_sweep_instance = EnrollmentSweepService()
    return _enrollment_sweep_instance
