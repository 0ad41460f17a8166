"""Payment model - Session-scoped payment records"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class PaymentStatus:
    PENDING = "pending"
    SUCCESS = "success"
    REFUND = "refund"
    FAILED = "failed"


class Payment(Base):
    """Payment captured for one session; refunded when the session is canceled"""

    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    session = relationship("Session", back_populates="payment")

    __table_args__ = (
        Index("idx_payments_session", "session_id"),
    )

    def __repr__(self):
        return f"<Payment(id={self.id}, session={self.session_id}, status={self.status})>"
