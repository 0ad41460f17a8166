"""
Session Sweeps

Periodic jobs that close out sessions the tutor never acted on:

- Expiry sweep: scheduled sessions whose grace period (last slot + 1h + 15m) has passed
  are canceled and their payments refunded. Time slots are left booked.
- Completion sweep: ongoing sessions running past the duration ceiling are completed.

Both are idempotent; a second run over the same data finds nothing to do.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from tutorly import config
from tutorly.database import AsyncSessionLocal
from tutorly.errors import PersistenceFailure
from tutorly.models import Payment, PaymentStatus, Session, SessionStatus
from tutorly.services.email_templates import TemplateKind
from tutorly.services.notifications import DeliveryResult, Notifier, deliver_all, get_notifier, session_deliveries
from tutorly.services.time_slots import business_today, is_past_grace_period, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ItemResult:
    """Outcome of the post-commit work for one swept session"""
    session_id: str
    notifications: List[DeliveryResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(n.ok for n in self.notifications)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "ok": self.ok,
            "error": self.error,
            "notifications": [n.to_dict() for n in self.notifications],
        }


@dataclass
class SweepResult:
    kind: str
    count: int = 0
    session_ids: List[str] = field(default_factory=list)
    items: List[ItemResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        count_key = "expiredCount" if self.kind == "expiry" else "completedCount"
        return {
            count_key: self.count,
            "sessionIds": self.session_ids,
            "items": [item.to_dict() for item in self.items],
        }


class SessionSweepService:
    """Expire abandoned sessions and complete overrunning ones"""

    def __init__(
        self,
        session_factory=None,
        notifier: Optional[Notifier] = None,
        clock: Callable = utcnow,
        tz=None,
        max_duration_minutes: Optional[int] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self._notifier = notifier
        self.clock = clock
        self.tz = tz
        self.max_duration = timedelta(minutes=max_duration_minutes or config.SESSION_MAX_DURATION_MINUTES)

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = get_notifier()
        return self._notifier

    async def _notify_each(self, sessions: List[Session], template_kind: str, **extra_for) -> List[ItemResult]:
        items = []
        for session in sessions:
            try:
                extra = {key: fn(session) for key, fn in extra_for.items()}
                deliveries = session_deliveries(session, template_kind, **extra)
            except Exception as e:
                # The status change is already committed; report and move on
                logger.error(f"Could not prepare notifications for session {session.id}: {e}", exc_info=True)
                items.append(ItemResult(session_id=str(session.id), error=str(e)))
                continue
            notifications = await deliver_all(self.notifier, deliveries)
            items.append(ItemResult(session_id=str(session.id), notifications=notifications))
        return items

    async def run_expiry_sweep(self) -> SweepResult:
        """
        Cancel scheduled sessions whose grace period has ended.

        Sessions with unparseable date or slot data are left alone.
        """
        now = self.clock()
        today = business_today(now, self.tz)
        result = SweepResult(kind="expiry")

        async with self.session_factory() as db:
            try:
                rows = await db.execute(
                    select(Session)
                    .options(
                        selectinload(Session.student),
                        selectinload(Session.tutor),
                        selectinload(Session.payment),
                    )
                    .where(Session.status == SessionStatus.SCHEDULED, Session.date <= today)
                )
                candidates = rows.scalars().all()

                expired = [s for s in candidates if is_past_grace_period(s.date, s.slots, now, self.tz)]
                if not expired:
                    logger.info("Expiry sweep: no sessions past their grace period")
                    return result

                # A tutor may have started one since the select
                updated = await db.execute(
                    update(Session)
                    .where(Session.id.in_([s.id for s in expired]), Session.status == SessionStatus.SCHEDULED)
                    .values(status=SessionStatus.CANCELED)
                    .returning(Session.id)
                    .execution_options(synchronize_session=False)
                )
                canceled_ids = set(updated.scalars().all())
                if canceled_ids:
                    await db.execute(
                        update(Payment)
                        .where(Payment.session_id.in_(list(canceled_ids)))
                        .values(status=PaymentStatus.REFUND)
                        .execution_options(synchronize_session=False)
                    )
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Expiry sweep failed: {e}", exc_info=True)
                raise PersistenceFailure("Expiry sweep failed") from e

        canceled = [s for s in expired if s.id in canceled_ids]
        if len(canceled) < len(expired):
            logger.info(f"Expiry sweep: {len(expired) - len(canceled)} session(s) changed state before cancel")
        result.count = len(canceled)
        result.session_ids = [str(s.id) for s in canceled]
        logger.info(f"Expiry sweep: cancelled {result.count} session(s)")

        result.items = await self._notify_each(
            canceled,
            TemplateKind.AUTO_CANCELLATION,
            refund_amount=lambda s: s.payment.amount if s.payment is not None else s.price,
        )
        return result

    async def run_completion_sweep(self) -> SweepResult:
        """Complete ongoing sessions that started more than the duration ceiling ago"""
        now = self.clock()
        cutoff = now - self.max_duration
        result = SweepResult(kind="completion")

        async with self.session_factory() as db:
            try:
                rows = await db.execute(
                    select(Session)
                    .options(selectinload(Session.student), selectinload(Session.tutor))
                    .where(
                        Session.status == SessionStatus.ONGOING,
                        Session.start_time.is_not(None),
                        Session.start_time <= cutoff,
                    )
                )
                overdue = rows.scalars().all()
                if not overdue:
                    logger.info("Completion sweep: no overdue sessions")
                    return result

                updated = await db.execute(
                    update(Session)
                    .where(Session.id.in_([s.id for s in overdue]), Session.status == SessionStatus.ONGOING)
                    .values(status=SessionStatus.COMPLETED, end_time=now)
                    .returning(Session.id)
                    .execution_options(synchronize_session=False)
                )
                completed_ids = set(updated.scalars().all())
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Completion sweep failed: {e}", exc_info=True)
                raise PersistenceFailure("Completion sweep failed") from e

        completed = [s for s in overdue if s.id in completed_ids]
        result.count = len(completed)
        result.session_ids = [str(s.id) for s in completed]
        logger.info(f"Completion sweep: completed {result.count} session(s)")

        result.items = await self._notify_each(
            completed,
            TemplateKind.COMPLETION,
            amount=lambda s: s.price,
        )
        return result


# Singleton instance
_sweep_instance: Optional[SessionSweepService] = None


def get_session_sweeps() -> SessionSweepService:
    """Get singleton instance of SessionSweepService"""
    global _sweep_instance
    if _sweep_instance is None:
        _sweep_instance = SessionSweepService()
    return _sweep_instance
