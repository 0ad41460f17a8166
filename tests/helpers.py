"""Test doubles and data builders shared by the unit and integration tests"""
import itertools
from datetime import datetime, timezone

from sqlalchemy import event

from tutorly.errors import UpstreamFailure
from tutorly.models import (
    ClassOccurrence,
    ClassOccurrenceStatus,
    Enrollment,
    EnrollmentStatus,
    Payment,
    PaymentStatus,
    Session,
    SessionStatus,
    Student,
    TimeSlot,
    TimeSlotStatus,
    Tutor,
    TutoringClass,
)

HOST_LINK = "https://zoom.us/s/81234567890?zak=stale-token"
PARTICIPANT_LINK = "https://zoom.us/j/81234567890?pwd=abc123"


def slot(hour: int, minute: int = 0) -> str:
    """Slot stamp in the stored format"""
    return f"1970-01-01T{hour:02d}:{minute:02d}:00.000Z"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class RecordingNotifier:
    """Notifier double; recipients listed in `fail_for` raise UpstreamFailure"""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, recipient, template_kind, template_data):
        if recipient in self.fail_for:
            raise UpstreamFailure(f"Mailbox unavailable: {recipient}")
        self.sent.append((recipient, template_kind, template_data))

    @property
    def recipients(self):
        return [recipient for recipient, _, _ in self.sent]


class FakeRefresher:
    """Meeting link refresher double that swaps the zak for a known value"""

    def __init__(self, new_link="https://zoom.us/s/81234567890?zak=fresh-token"):
        self.new_link = new_link
        self.calls = []

    async def refresh_or_fallback(self, host_link):
        self.calls.append(host_link)
        return self.new_link if host_link else host_link


class Seeder:
    """Builds rows in the test database and reads them back"""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = itertools.count(1)

    async def add(self, obj):
        async with self.session_factory() as db:
            db.add(obj)
            await db.commit()
        return obj

    async def get(self, model, pk):
        async with self.session_factory() as db:
            return await db.get(model, pk)

    async def tutor(self, **kwargs):
        n = next(self._counter)
        return await self.add(Tutor(
            name=kwargs.get("name", f"Tutor {n}"),
            email=kwargs.get("email", f"tutor{n}@tutorly.lk"),
            hourly_rate=kwargs.get("hourly_rate", 2000),
        ))

    async def student(self, **kwargs):
        n = next(self._counter)
        return await self.add(Student(
            name=kwargs.get("name", f"Student {n}"),
            email=kwargs.get("email", f"student{n}@tutorly.lk"),
        ))

    async def session(self, tutor, student, **kwargs):
        return await self.add(Session(
            tutor_id=tutor.id,
            student_id=student.id if student else None,
            title=kwargs.get("title", "Physics revision"),
            status=kwargs.get("status", SessionStatus.SCHEDULED),
            date=kwargs.get("date"),
            slots=kwargs.get("slots", []),
            start_time=kwargs.get("start_time"),
            end_time=kwargs.get("end_time"),
            meeting_urls=kwargs.get("meeting_urls", [HOST_LINK, PARTICIPANT_LINK]),
            materials=kwargs.get("materials", []),
            price=kwargs.get("price", 2000),
        ))

    async def payment(self, session, **kwargs):
        return await self.add(Payment(
            session_id=session.id,
            student_id=session.student_id,
            amount=kwargs.get("amount", session.price),
            status=kwargs.get("status", PaymentStatus.SUCCESS),
        ))

    async def time_slot(self, tutor, day, start_time, **kwargs):
        return await self.add(TimeSlot(
            tutor_id=tutor.id,
            date=day,
            start_time=start_time,
            status=kwargs.get("status", TimeSlotStatus.BOOKED),
        ))

    async def tutoring_class(self, tutor, **kwargs):
        return await self.add(TutoringClass(
            tutor_id=tutor.id,
            title=kwargs.get("title", "A/L Combined Maths"),
            subject=kwargs.get("subject", "Mathematics"),
        ))

    async def occurrence(self, tutoring_class, date_time, **kwargs):
        return await self.add(ClassOccurrence(
            class_id=tutoring_class.id,
            date_time=date_time,
            status=kwargs.get("status", ClassOccurrenceStatus.UPCOMING),
            meeting_urls=kwargs.get("meeting_urls", [HOST_LINK, PARTICIPANT_LINK]),
        ))

    async def enrollment(self, student, tutoring_class, **kwargs):
        enrollment = Enrollment(
            student_id=student.id,
            class_id=tutoring_class.id,
            status=kwargs.get("status", EnrollmentStatus.VALID),
        )
        if "created_at" in kwargs:
            enrollment.created_at = kwargs["created_at"]
        return await self.add(enrollment)


def write_before(engine, prefix, sql, params=()):
    """
    Run raw `sql` on the service's own connection just before its first statement
    starting with `prefix`. Stands in for another request that changed the row after
    the service read it.

    Returns the list of statements that triggered the write (at most one).
    """
    fired = []

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _concurrent_write(conn, cursor, statement, parameters, context, executemany):
        if fired or not statement.lstrip().upper().startswith(prefix.upper()):
            return
        fired.append(statement)
        other = conn.connection.dbapi_connection.cursor()
        try:
            other.execute(sql, params)
        finally:
            other.close()

    return fired
