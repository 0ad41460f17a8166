"""Group class models - Recurring classes and their scheduled occurrences"""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class ClassOccurrenceStatus:
    UPCOMING = "upcoming"
    COMPLETED = "completed"


class TutoringClass(Base):
    """Recurring group class run by one tutor"""

    __tablename__ = "classes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(Uuid, ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=True)
    subject = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tutor = relationship("Tutor")
    occurrences = relationship("ClassOccurrence", back_populates="tutoring_class")
    enrollments = relationship("Enrollment", back_populates="tutoring_class")

    def __repr__(self):
        return f"<TutoringClass(id={self.id}, title={self.title})>"


class ClassOccurrence(Base):
    """One scheduled meeting of a group class; `date_time` is a UTC instant"""

    __tablename__ = "class_occurrences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=ClassOccurrenceStatus.UPCOMING)
    date_time = Column(DateTime(timezone=True), nullable=True)
    meeting_urls = Column(JSON, nullable=False, default=list)

    tutoring_class = relationship("TutoringClass", back_populates="occurrences")

    __table_args__ = (
        CheckConstraint("status IN ('upcoming', 'completed')", name="ck_class_occurrences_status"),
        Index("idx_class_occurrences_status_time", "status", "date_time"),
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
        return f"<ClassOccurrence(id={self.id}, class={self.class_id}, date_time={self.date_time})>"
