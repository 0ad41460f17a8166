"""SQLAlchemy ORM Models for the Tutorly session lifecycle schema"""
from tutorly.models.tutor import Tutor
from tutorly.models.student import Student
from tutorly.models.session import Session, SessionStatus
from tutorly.models.time_slot import TimeSlot, TimeSlotStatus
from tutorly.models.payment import Payment, PaymentStatus
from tutorly.models.tutoring_class import TutoringClass, ClassOccurrence, ClassOccurrenceStatus
from tutorly.models.enrollment import Enrollment, EnrollmentStatus

__all__ = [
    "Tutor",
    "Student",
    "Session",
    "SessionStatus",
    "TimeSlot",
    "TimeSlotStatus",
    "Payment",
    "PaymentStatus",
    "TutoringClass",
    "ClassOccurrence",
    "ClassOccurrenceStatus",
    "Enrollment",
    "EnrollmentStatus",
]
