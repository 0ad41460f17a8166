"""TimeSlot model - A tutor's bookable hour"""
from sqlalchemy import Column, String, Date, Time, DateTime, ForeignKey, Uuid, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class TimeSlotStatus:
    FREE = "free"
    BOOKED = "booked"


class TimeSlot(Base):
    """One hour of tutor availability, keyed by tutor + date + start time"""

    __tablename__ = "time_slots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tutor_id = Column(Uuid, ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=True)
    status = Column(String(10), nullable=False, default=TimeSlotStatus.FREE)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint("status IN ('free', 'booked')", name="ck_time_slots_status"),
        UniqueConstraint("tutor_id", "date", "start_time", name="uq_time_slots_tutor_date_start"),
        Index("idx_time_slots_tutor_date", "tutor_id", "date"),
    )

    def __repr__(self):
        return f"<TimeSlot(tutor={self.tutor_id}, date={self.date}, start={self.start_time}, status={self.status})>"
