"""
Session State Machine

Tutor-driven transitions of a one-to-one session:

    scheduled --start--> ongoing --complete--> completed

plus the generic status setter used by operator tooling and the materials list a tutor
maintains on a session. Cancellation lives in cancellation.py because it touches
payments and time slots as well.
"""
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutorly.database import AsyncSessionLocal
from tutorly.errors import InvalidState, NotFound, PersistenceFailure
from tutorly.models import Session, SessionStatus
from tutorly.services.email_templates import TemplateKind
from tutorly.services.materials import parse_material, readable_materials, serialize_material
from tutorly.services.notifications import Notifier, deliver_all, get_notifier, session_deliveries
from tutorly.services.time_slots import duration_hours, ensure_utc, time_range, utcnow

logger = logging.getLogger(__name__)


def as_uuid(value) -> Optional[uuid.UUID]:
    """Coerce an identifier; malformed ids resolve to nothing rather than erroring"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def session_to_dict(session: Session) -> Dict[str, Any]:
    """Public shape of a session for API responses"""
    start_time = ensure_utc(session.start_time)
    end_time = ensure_utc(session.end_time)
    return {
        "session_id": str(session.id),
        "tutor_id": str(session.tutor_id),
        "student_id": str(session.student_id) if session.student_id else None,
        "title": session.title,
        "status": session.status,
        "date": session.date.isoformat() if session.date else None,
        "slots": list(session.slots or []),
        "time_range": time_range(session.slots),
        "duration_hours": duration_hours(session.slots),
        "start_time": start_time.isoformat() if start_time else None,
        "end_time": end_time.isoformat() if end_time else None,
        "meeting_urls": list(session.meeting_urls or []),
        "materials": readable_materials(session.materials),
        "price": session.price,
    }


async def commit_or_raise(db: AsyncSession, action: str) -> None:
    """Commit, translating storage errors into PersistenceFailure"""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to {action}: {e}", exc_info=True)
        raise PersistenceFailure(f"Failed to {action}") from e


class SessionLifecycleService:
    """Drive sessions through their tutor-initiated transitions"""

    def __init__(
        self,
        session_factory=None,
        notifier: Optional[Notifier] = None,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self._notifier = notifier
        self.clock = clock

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = get_notifier()
        return self._notifier

    async def _guarded_lookup(
        self,
        db: AsyncSession,
        tutor_id,
        session_id,
        status: Optional[str] = None,
    ) -> Session:
        """
        Load a session by id and owner, optionally also by status.

        A missing session, one owned by another tutor and one in the wrong status all
        raise the same NotFound, so callers cannot tell which case occurred.
        """
        tutor_uuid = as_uuid(tutor_id)
        session_uuid = as_uuid(session_id)
        if tutor_uuid is None or session_uuid is None:
            raise NotFound("Session not found")

        query = (
            select(Session)
            .options(selectinload(Session.student), selectinload(Session.tutor))
            .where(Session.id == session_uuid, Session.tutor_id == tutor_uuid)
        )
        if status is not None:
            query = query.where(Session.status == status)

        try:
            result = await db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load session {session_id}: {e}", exc_info=True)
            raise PersistenceFailure("Failed to load session") from e

        session = result.scalar_one_or_none()
        if session is None:
            raise NotFound("Session not found", details={"session_id": str(session_id)})
        return session

    async def get_session(self, tutor_id, session_id) -> Session:
        async with self.session_factory() as db:
            return await self._guarded_lookup(db, tutor_id, session_id)

    async def start(self, tutor_id, session_id) -> Session:
        """
        Start a scheduled session.

        Raises NotFound unless the session exists, belongs to the tutor and is scheduled.
        """
        async with self.session_factory() as db:
            session = await self._guarded_lookup(db, tutor_id, session_id, SessionStatus.SCHEDULED)
            session.status = SessionStatus.ONGOING
            session.start_time = self.clock()
            await commit_or_raise(db, f"start session {session_id}")

        logger.info(f"Session {session_id} started by tutor {tutor_id}")
        return session

    async def complete(self, tutor_id, session_id) -> Session:
        """
        Complete an ongoing session, then notify both parties.

        Notification failures are logged only; the session stays completed.
        """
        async with self.session_factory() as db:
            session = await self._guarded_lookup(db, tutor_id, session_id, SessionStatus.ONGOING)
            session.status = SessionStatus.COMPLETED
            session.end_time = self.clock()
            await commit_or_raise(db, f"complete session {session_id}")

        logger.info(f"Session {session_id} completed by tutor {tutor_id}")

        hours = duration_hours(session.slots)
        await deliver_all(
            self.notifier,
            session_deliveries(
                session,
                TemplateKind.COMPLETION,
                amount=session.price,
                session_duration=f"{hours} hour{'s' if hours != 1 else ''}",
            ),
        )
        return session

    async def update_status(self, session_id, status: str) -> Session:
        """
        Set a session's status directly.

        Stamps start_time when moving to ongoing and end_time when moving to completed.
        Transition legality is left to the caller.
        """
        if status not in SessionStatus.ALL:
            raise ValueError(f"Unknown session status '{status}'")

        session_uuid = as_uuid(session_id)
        if session_uuid is None:
            raise NotFound("Session not found")

        async with self.session_factory() as db:
            session = await db.get(Session, session_uuid)
            if session is None:
                raise NotFound("Session not found", details={"session_id": str(session_id)})

            session.status = status
            if status == SessionStatus.ONGOING:
                session.start_time = self.clock()
            elif status == SessionStatus.COMPLETED:
                session.end_time = self.clock()
            await commit_or_raise(db, f"update status of session {session_id}")

        logger.info(f"Session {session_id} status set to {status}")
        return session

    async def add_material(self, tutor_id, session_id, material) -> List[Any]:
        """Append a material to a session; returns the stored materials list"""
        entry = serialize_material(parse_material(material))

        async with self.session_factory() as db:
            session = await self._guarded_lookup(db, tutor_id, session_id)
            if session.status == SessionStatus.CANCELED:
                raise InvalidState("Cannot add materials to a canceled session")

            # Reassign so the JSON column is flagged dirty
            session.materials = list(session.materials or []) + [entry]
            await commit_or_raise(db, f"add material to session {session_id}")
            return session.materials

    async def remove_material(self, tutor_id, session_id, index: int) -> List[Any]:
        """Remove the material at `index`; returns the stored materials list"""
        async with self.session_factory() as db:
            session = await self._guarded_lookup(db, tutor_id, session_id)
            materials = list(session.materials or [])
            if index < 0 or index >= len(materials):
                raise InvalidState(
                    "Material index out of range",
                    details={"index": index, "count": len(materials)},
                )

            del materials[index]
            session.materials = materials
            await commit_or_raise(db, f"remove material from session {session_id}")
            return session.materials


# Singleton instance
_lifecycle_instance: Optional[SessionLifecycleService] = None


def get_session_lifecycle() -> SessionLifecycleService:
    """Get singleton instance of SessionLifecycleService"""
    global _lifecycle_instance
    if _lifecycle_instance is None:
        _lifecycle_instance = SessionLifecycleService()
    return _lifecycle_instance
