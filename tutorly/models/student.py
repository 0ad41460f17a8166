"""Student model"""
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.sql import func
import uuid

from tutorly.database import Base


class Student(Base):
    """Student who books sessions and enrolls in classes"""

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(320), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Student(id={self.id}, name={self.name})>"
