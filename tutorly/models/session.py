"""Session model - Booked one-to-one tutoring sessions"""
from sqlalchemy import (
    Column, String, Integer, Date, DateTime, ForeignKey, JSON, Uuid, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class SessionStatus:
    """Allowed values of Session.status"""

    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELED = "canceled"

    ALL = (SCHEDULED, ONGOING, COMPLETED, CANCELED)
    TERMINAL = (COMPLETED, CANCELED)


class Session(Base):
    """
    Individual tutoring session between one tutor and one student.

    `slots` holds hour-aligned stamps whose time-of-day is wall-clock time in the
    business timezone; `date` carries the calendar day. `meeting_urls` is
    conventionally [host_link, participant_link].
    """

    __tablename__ = "sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(Uuid, ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=True)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED)
    date = Column(Date, nullable=True)
    slots = Column(JSON, nullable=False, default=list)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    meeting_urls = Column(JSON, nullable=False, default=list)
    materials = Column(JSON, nullable=False, default=list)
    price = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    tutor = relationship("Tutor")
    student = relationship("Student")
    payment = relationship("Payment", back_populates="session", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'ongoing', 'completed', 'canceled')",
            name="ck_sessions_status",
        ),
        Index("idx_sessions_status_date", "status", "date"),
        Index("idx_sessions_tutor", "tutor_id"),
        Index("idx_sessions_student", "student_id"),
    )

    @property
    def host_link(self):
        urls = self.meeting_urls or []
        return urls[0] if len(urls) > 0 else None

    @property
    def participant_link(self):
        urls = self.meeting_urls or []
        return urls[1] if len(urls) > 1 else None

    def __repr__(self):
        return f"<Session(id={self.id}, status={self.status}, date={self.date})>"
