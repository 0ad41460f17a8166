"""
Cancellation Orchestrator

Cancels a scheduled session on the tutor's behalf. Three writes happen in one
transaction:
    1. session -> canceled
    2. its payment -> refund
    3. the tutor's booked time slots for the session's hours -> free

Slot release runs inside a SAVEPOINT so a failure there is rolled back on its own and
the cancellation still commits. Notifications go out only after the commit.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutorly.database import AsyncSessionLocal
from tutorly.errors import InvalidState, NotFound, PersistenceFailure
from tutorly.models import Payment, PaymentStatus, Session, SessionStatus, TimeSlot, TimeSlotStatus
from tutorly.services.email_templates import TemplateKind
from tutorly.services.notifications import DeliveryResult, Notifier, deliver_all, get_notifier, session_deliveries
from tutorly.services.session_lifecycle import as_uuid
from tutorly.services.time_slots import sorted_slot_times

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    success: bool
    message: str
    session_id: str
    released_slots: int = 0
    notifications: List[DeliveryResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "session_id": self.session_id,
            "released_slots": self.released_slots,
            "notifications": [n.to_dict() for n in self.notifications],
        }


class CancellationService:
    """Cancel sessions and undo their payment and slot bookings"""

    def __init__(self, session_factory=None, notifier: Optional[Notifier] = None):
        self.session_factory = session_factory or AsyncSessionLocal
        self._notifier = notifier

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = get_notifier()
        return self._notifier

    async def _load(self, db: AsyncSession, tutor_id, session_id) -> Session:
        tutor_uuid = as_uuid(tutor_id)
        session_uuid = as_uuid(session_id)
        if tutor_uuid is None or session_uuid is None:
            raise NotFound("Session not found")

        result = await db.execute(
            select(Session)
            .options(
                selectinload(Session.student),
                selectinload(Session.tutor),
                selectinload(Session.payment),
            )
            .where(Session.id == session_uuid, Session.tutor_id == tutor_uuid)
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFound("Session not found", details={"session_id": str(session_id)})
        return session

    async def _mark_refunded(self, db: AsyncSession, session: Session) -> None:
        await db.execute(
            update(Payment)
            .where(Payment.session_id == session.id)
            .values(status=PaymentStatus.REFUND)
            .execution_options(synchronize_session=False)
        )

    async def _release_time_slots(self, db: AsyncSession, session: Session) -> int:
        """Free the tutor's booked slots on the session date at the session's hours"""
        try:
            slot_times = sorted_slot_times(session.slots)
        except ValueError:
            logger.warning(f"Session {session.id} has unparseable slots, no time slots released")
            return 0
        if not slot_times or session.date is None:
            return 0

        result = await db.execute(
            update(TimeSlot)
            .where(
                TimeSlot.tutor_id == session.tutor_id,
                TimeSlot.date == session.date,
                TimeSlot.start_time.in_(slot_times),
                TimeSlot.status == TimeSlotStatus.BOOKED,
            )
            .values(status=TimeSlotStatus.FREE)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def cancel(self, tutor_id, session_id, reason: Optional[str] = None) -> CancellationResult:
        """
        Cancel a scheduled session owned by the tutor.

        Raises NotFound when the session does not exist or is not the tutor's,
        InvalidState when it is no longer scheduled, and PersistenceFailure when the
        status or refund write fails (nothing is changed in that case).
        """
        async with self.session_factory() as db:
            session = await self._load(db, tutor_id, session_id)
            if session.status != SessionStatus.SCHEDULED:
                raise InvalidState(
                    f"Only scheduled sessions can be cancelled (current status: {session.status})",
                    details={"session_id": str(session.id), "status": session.status},
                )

            released = 0
            try:
                # Status guard: a start() that landed after the read wins
                updated = await db.execute(
                    update(Session)
                    .where(
                        Session.id == session.id,
                        Session.tutor_id == session.tutor_id,
                        Session.status == SessionStatus.SCHEDULED,
                    )
                    .values(status=SessionStatus.CANCELED)
                    .execution_options(synchronize_session="evaluate")
                )
                if updated.rowcount != 1:
                    await db.rollback()
                    raise InvalidState(
                        "Session is no longer scheduled",
                        details={"session_id": str(session.id)},
                    )
                await self._mark_refunded(db, session)

                try:
                    async with db.begin_nested():
                        released = await self._release_time_slots(db, session)
                except SQLAlchemyError as e:
                    logger.error(f"Failed to release time slots for session {session.id}: {e}")
                    released = 0

                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to cancel session {session_id}: {e}", exc_info=True)
                raise PersistenceFailure("Failed to cancel session", details={"session_id": str(session_id)}) from e

        logger.info(f"Session {session_id} cancelled by tutor {tutor_id}, {released} time slot(s) released")

        refund_amount = session.payment.amount if session.payment is not None else session.price
        notifications = await deliver_all(
            self.notifier,
            session_deliveries(session, TemplateKind.CANCELLATION, reason=reason, refund_amount=refund_amount),
        )

        return CancellationResult(
            success=True,
            message="Session cancelled successfully",
            session_id=str(session.id),
            released_slots=released,
            notifications=notifications,
        )


# Singleton instance
_cancellation_instance: Optional[CancellationService] = None


def get_cancellation_service() -> CancellationService:
    """Get singleton instance of CancellationService"""
    global _cancellation_instance
    if _cancellation_instance is None:
        _cancellation_instance = CancellationService()
    return _cancellation_instance
