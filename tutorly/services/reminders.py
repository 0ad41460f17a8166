"""
Reminder Scheduler

Sends "your session starts soon" emails 24 hours and 1 hour ahead. Each run looks at a
short window starting `hours_ahead` from now:

    window = [now + hours_ahead, now + hours_ahead + 10 minutes]   (business timezone)

and reminds everyone attached to a session or class occurrence starting inside it. The
tutor's host link is refreshed first so it carries a valid zak token. Reminders never
change session or occurrence status.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from tutorly import config
from tutorly.database import AsyncSessionLocal
from tutorly.errors import PersistenceFailure
from tutorly.models import (
    ClassOccurrence,
    ClassOccurrenceStatus,
    Enrollment,
    EnrollmentStatus,
    Session,
    SessionStatus,
    TutoringClass,
)
from tutorly.services.email_templates import TemplateKind
from tutorly.services.meeting_links import MeetingLinkRefresher, get_meeting_link_refresher
from tutorly.services.notifications import (
    Delivery,
    DeliveryResult,
    Notifier,
    deliver_all,
    format_session_date,
    get_notifier,
)
from tutorly.services.time_slots import (
    first_slot_start,
    format_clock,
    get_business_timezone,
    to_business_time,
    utcnow,
)

logger = logging.getLogger(__name__)

REMINDER_CADENCES = {24: "24 hours", 1: "1 hour"}


@dataclass(frozen=True)
class ReminderWindow:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    @property
    def dates(self):
        """Business-timezone calendar dates the window touches"""
        return sorted({self.start.date(), self.end.date()})


@dataclass
class ReminderRunResult:
    hours_ahead: int
    window: ReminderWindow
    sessions: int = 0
    class_occurrences: int = 0
    notifications: List[DeliveryResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for n in self.notifications if n.ok)

    @property
    def failed(self) -> int:
        return sum(1 for n in self.notifications if not n.ok)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hours_ahead": self.hours_ahead,
            "window_start": self.window.start.isoformat(),
            "window_end": self.window.end.isoformat(),
            "sessions": self.sessions,
            "class_occurrences": self.class_occurrences,
            "sent": self.sent,
            "failed": self.failed,
            "notifications": [n.to_dict() for n in self.notifications],
        }


def reminder_text(hours_ahead: int) -> str:
    try:
        return REMINDER_CADENCES[hours_ahead]
    except KeyError:
        raise ValueError(f"Unsupported reminder cadence: {hours_ahead} hours ahead") from None


def compute_window(hours_ahead: int, now: Optional[datetime] = None, tz=None) -> ReminderWindow:
    """Reminder window for a cadence, expressed in the business timezone"""
    reminder_text(hours_ahead)
    start = to_business_time(now or utcnow(), tz) + timedelta(hours=hours_ahead)
    # Re-normalize so a DST change inside the lookahead gets the right offset
    tz = tz or get_business_timezone()
    start = tz.normalize(start)
    return ReminderWindow(start=start, end=tz.normalize(start + timedelta(minutes=config.REMINDER_BUFFER_MINUTES)))


class ReminderService:
    """Find sessions and class occurrences about to start and remind their participants"""

    def __init__(
        self,
        session_factory=None,
        notifier: Optional[Notifier] = None,
        refresher: Optional[MeetingLinkRefresher] = None,
        clock: Callable = utcnow,
        tz=None,
        send_delay: Optional[float] = None,
        class_send_delay: Optional[float] = None,
    ):
        self.session_factory = session_factory or AsyncSessionLocal
        self._notifier = notifier
        self._refresher = refresher
        self.clock = clock
        self.tz = tz or get_business_timezone()
        self.send_delay = config.REMINDER_SEND_DELAY_SECONDS if send_delay is None else send_delay
        self.class_send_delay = (
            config.CLASS_REMINDER_SEND_DELAY_SECONDS if class_send_delay is None else class_send_delay
        )

    @property
    def notifier(self) -> Notifier:
        if self._notifier is None:
            self._notifier = get_notifier()
        return self._notifier

    @property
    def refresher(self) -> MeetingLinkRefresher:
        if self._refresher is None:
            self._refresher = get_meeting_link_refresher()
        return self._refresher

    async def find_sessions(self, window: ReminderWindow) -> List[Session]:
        """Scheduled sessions whose first slot starts inside the window"""
        async with self.session_factory() as db:
            try:
                rows = await db.execute(
                    select(Session)
                    .options(selectinload(Session.student), selectinload(Session.tutor))
                    .where(Session.status == SessionStatus.SCHEDULED, Session.date.in_(window.dates))
                )
            except SQLAlchemyError as e:
                logger.error(f"Failed to query sessions for reminders: {e}", exc_info=True)
                raise PersistenceFailure("Failed to query sessions for reminders") from e
            sessions = rows.scalars().all()

        due = []
        for session in sessions:
            starts_at = first_slot_start(session.date, session.slots, self.tz)
            if starts_at is not None and window.contains(starts_at):
                due.append(session)
        return due

    async def find_class_occurrences(self, window: ReminderWindow) -> List[ClassOccurrence]:
        """Upcoming class occurrences starting inside the window"""
        async with self.session_factory() as db:
            try:
                rows = await db.execute(
                    select(ClassOccurrence)
                    .options(
                        selectinload(ClassOccurrence.tutoring_class).selectinload(TutoringClass.tutor),
                        selectinload(ClassOccurrence.tutoring_class)
                        .selectinload(TutoringClass.enrollments)
                        .selectinload(Enrollment.student),
                    )
                    .where(
                        ClassOccurrence.status == ClassOccurrenceStatus.UPCOMING,
                        ClassOccurrence.date_time >= window.start.astimezone(timezone.utc),
                        ClassOccurrence.date_time <= window.end.astimezone(timezone.utc),
                    )
                )
            except SQLAlchemyError as e:
                logger.error(f"Failed to query class occurrences for reminders: {e}", exc_info=True)
                raise PersistenceFailure("Failed to query class occurrences for reminders") from e
            return rows.scalars().all()

    async def _remind_session(self, session: Session, text: str) -> List[DeliveryResult]:
        if session.student is None or session.tutor is None:
            logger.warning(f"Skipping reminder for session {session.id}: missing participant")
            return []

        starts_at = first_slot_start(session.date, session.slots, self.tz)
        host_link = await self.refresher.refresh_or_fallback(session.host_link)
        data = {
            "student_name": session.student.name,
            "tutor_name": session.tutor.name,
            "session_date": format_session_date(session.date),
            "session_time": format_clock(to_business_time(starts_at, self.tz)),
            "reminder_time": text,
        }

        deliveries = [
            Delivery(
                entity_id=str(session.id),
                recipient=session.student.email,
                role="student",
                template_kind=TemplateKind.SESSION_REMINDER,
                template_data={**data, "type": "student", "meeting_link": session.participant_link},
            ),
            Delivery(
                entity_id=str(session.id),
                recipient=session.tutor.email,
                role="tutor",
                template_kind=TemplateKind.SESSION_REMINDER,
                template_data={**data, "type": "tutor", "meeting_link": host_link},
            ),
        ]
        results = await deliver_all(self.notifier, deliveries)
        logger.info(f"Sent {text} reminder for session {session.id}")
        return results

    async def _remind_class_occurrence(self, occurrence: ClassOccurrence, text: str) -> List[DeliveryResult]:
        tutoring_class = occurrence.tutoring_class
        if tutoring_class is None or tutoring_class.tutor is None or occurrence.date_time is None:
            logger.warning(f"Skipping reminder for class occurrence {occurrence.id}: missing data")
            return []

        local_start = to_business_time(occurrence.date_time, self.tz)
        tutor = tutoring_class.tutor
        host_link = await self.refresher.refresh_or_fallback(occurrence.host_link)
        students = [
            enrollment.student
            for enrollment in tutoring_class.enrollments
            if enrollment.status == EnrollmentStatus.VALID and enrollment.student is not None
        ]
        data = {
            "tutor_name": tutor.name,
            "session_date": format_session_date(local_start.date()),
            "session_time": format_clock(local_start),
            "session_subject": tutoring_class.title or "Class Session",
            "reminder_time": text,
        }

        results = []
        for index, student in enumerate(students):
            if index and self.class_send_delay:
                await asyncio.sleep(self.class_send_delay)
            results.extend(await deliver_all(self.notifier, [
                Delivery(
                    entity_id=str(occurrence.id),
                    recipient=student.email,
                    role="student",
                    template_kind=TemplateKind.SESSION_REMINDER,
                    template_data={
                        **data,
                        "type": "student",
                        "student_name": student.name,
                        "meeting_link": occurrence.participant_link,
                    },
                ),
            ]))

        results.extend(await deliver_all(self.notifier, [
            Delivery(
                entity_id=str(occurrence.id),
                recipient=tutor.email,
                role="tutor",
                template_kind=TemplateKind.SESSION_REMINDER,
                template_data={
                    **data,
                    "type": "tutor",
                    "student_name": f"{len(students)} students",
                    "meeting_link": host_link,
                },
            ),
        ]))
        logger.info(f"Sent {text} reminders to {len(students)} students for class occurrence {occurrence.id}")
        return results

    async def run(self, hours_ahead: int) -> ReminderRunResult:
        """Send every reminder due for the cadence"""
        text = reminder_text(hours_ahead)
        window = compute_window(hours_ahead, self.clock(), self.tz)
        result = ReminderRunResult(hours_ahead=hours_ahead, window=window)

        sessions = await self.find_sessions(window)
        logger.info(f"Found {len(sessions)} individual sessions needing {text} reminders")
        for index, session in enumerate(sessions):
            if index and self.send_delay:
                await asyncio.sleep(self.send_delay)
            result.notifications.extend(await self._remind_session(session, text))
        result.sessions = len(sessions)

        occurrences = await self.find_class_occurrences(window)
        logger.info(f"Found {len(occurrences)} class occurrences needing {text} reminders")
        for occurrence in occurrences:
            result.notifications.extend(await self._remind_class_occurrence(occurrence, text))
        result.class_occurrences = len(occurrences)

        logger.info(f"{text} reminders: {result.sent} sent, {result.failed} failed")
        return result


# Singleton instance
_reminder_instance: Optional[ReminderService] = None


def get_reminder_service() -> ReminderService:
    """Get singleton instance of ReminderService"""
    global _reminder_instance
    if _reminder_instance is None:
        _reminder_instance = ReminderService()
    return _reminder_instance
