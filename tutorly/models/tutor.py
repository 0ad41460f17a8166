"""Tutor model - Individual and group-class tutors"""
from sqlalchemy import Column, String, Integer, DateTime, Uuid, Index
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class Tutor(Base):
    """Tutor who owns sessions, time slots and group classes"""

    __tablename__ = "tutors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    hourly_rate = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_tutors_email", "email"),
    )

    def __repr__(self):
        return f"<Tutor(id={self.id}, name={self.name})>"
