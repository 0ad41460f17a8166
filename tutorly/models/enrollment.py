"""Enrollment model - Monthly student enrollment in a group class"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class EnrollmentStatus:
    VALID = "valid"
    INVALID = "invalid"


class Enrollment(Base):
    """Student enrollment in a group class, valid for one month from creation"""

    __tablename__ = "enrollments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.VALID)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    student = relationship("Student")
    tutoring_class = relationship("TutoringClass", back_populates="enrollments")

    __table_args__ = (
        CheckConstraint("status IN ('valid', 'invalid')", name="ck_enrollments_status"),
        Index("idx_enrollments_class_status", "class_id", "status"),
        Index("idx_enrollments_created", "created_at"),
    )

    def __repr__(self):
        return f"<Enrollment(id={self.id}, student={self.student_id}, status={self.status})>"
