#!/usr/bin/env python
"""
Demo Data Seeder CLI

Seeds tutors, students, booked sessions, payments, time slots and one group class so
every scheduler job has something to act on:

- sessions from yesterday that were never started (picked up by the expiry sweep)
- sessions started over an hour ago (picked up by the completion sweep)
- sessions starting in about 1 and 24 hours (picked up by the reminder jobs)
- a class occurrence starting in about 1 hour with enrolled students
"""

import asyncio
import argparse
import random
import sys
from datetime import time, timedelta
from pathlib import Path

from faker import Faker

# Add parent directory to path to import tutorly modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from tutorly.database import AsyncSessionLocal, init_models
from tutorly.models import (
    ClassOccurrence,
    Enrollment,
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
from tutorly.services.time_slots import get_business_timezone, to_business_time, utcnow

# Initialize Faker for realistic data generation
fake = Faker()

SUBJECTS = ["Mathematics", "Physics", "Chemistry", "Biology", "English", "ICT"]


def slot_stamp(hour: int) -> str:
    """Slot value in the stored format: only the time-of-day is meaningful"""
    return f"1970-01-01T{hour:02d}:00:00.000Z"


def meeting_urls() -> list:
    meeting_id = fake.numerify("###########")
    return [
        f"https://zoom.us/s/{meeting_id}?zak={fake.sha1()[:20]}",
        f"https://zoom.us/j/{meeting_id}?pwd={fake.lexify('??????????')}",
    ]


def build_session(tutor, student, day, hours, status, price, start_time=None):
    session = Session(
        tutor_id=tutor.id,
        student_id=student.id,
        title=f"{random.choice(SUBJECTS)} with {tutor.name}",
        status=status,
        date=day,
        slots=[slot_stamp(h) for h in hours],
        start_time=start_time,
        meeting_urls=meeting_urls(),
        materials=[],
        price=price,
    )
    slots = [
        TimeSlot(
            tutor_id=tutor.id,
            date=day,
            start_time=time(hour=h),
            status=TimeSlotStatus.BOOKED,
        )
        for h in hours
    ]
    return session, slots


async def seed(args):
    """Create the demo dataset"""
    await init_models()
    tz = get_business_timezone()
    now = utcnow()
    local_now = to_business_time(now, tz)

    async with AsyncSessionLocal() as db:
        tutors = [
            Tutor(name=fake.name(), email=fake.unique.email(), hourly_rate=random.choice([1500, 2000, 2500, 3000]))
            for _ in range(args.num_tutors)
        ]
        students = [Student(name=fake.name(), email=fake.unique.email()) for _ in range(args.num_students)]
        db.add_all(tutors + students)
        await db.flush()

        sessions = []
        for tutor in tutors:
            price = tutor.hourly_rate

            # Never started yesterday afternoon
            yesterday = (local_now - timedelta(days=1)).date()
            sessions.append(build_session(tutor, random.choice(students), yesterday, [14, 15], SessionStatus.SCHEDULED, price * 2))

            # Started 90 minutes ago and never completed
            sessions.append(build_session(
                tutor, random.choice(students), local_now.date(), [max(local_now.hour - 2, 0)],
                SessionStatus.ONGOING, price, start_time=now - timedelta(minutes=90),
            ))

            # Reminder targets, aligned to the next whole hour
            for hours_ahead in (1, 24):
                starts = (local_now + timedelta(hours=hours_ahead + 1)).replace(minute=0, second=0, microsecond=0)
                sessions.append(build_session(
                    tutor, random.choice(students), starts.date(), [starts.hour], SessionStatus.SCHEDULED, price,
                ))

        seen_slots = set()
        for session, slots in sessions:
            db.add(session)
            for slot in slots:
                key = (slot.tutor_id, slot.date, slot.start_time)
                if key not in seen_slots:
                    seen_slots.add(key)
                    db.add(slot)
        await db.flush()

        for session, _ in sessions:
            db.add(Payment(
                session_id=session.id,
                student_id=session.student_id,
                amount=session.price,
                status=PaymentStatus.SUCCESS,
            ))

        tutoring_class = TutoringClass(
            tutor_id=tutors[0].id,
            title=f"{random.choice(SUBJECTS)} Group Class",
            subject=random.choice(SUBJECTS),
        )
        db.add(tutoring_class)
        await db.flush()

        db.add(ClassOccurrence(
            class_id=tutoring_class.id,
            date_time=now + timedelta(hours=1, minutes=5),
            meeting_urls=meeting_urls(),
        ))
        for student in random.sample(students, k=min(5, len(students))):
            db.add(Enrollment(student_id=student.id, class_id=tutoring_class.id))

        await db.commit()

    print("=" * 60)
    print("Demo data seeded")
    print("=" * 60)
    print(f"Tutors: {len(tutors)}")
    print(f"Students: {len(students)}")
    print(f"Sessions: {len(sessions)}")
    print(f"Business timezone: {tz.zone}")
    print("=" * 60)


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Seed demo data for the Tutorly session engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--num-tutors",
        type=int,
        default=3,
        help="Number of tutors to create (default: 3)",
    )

    parser.add_argument(
        "--num-students",
        type=int,
        default=10,
        help="Number of students to create (default: 10)",
    )

    args = parser.parse_args()

    if args.num_tutors < 1 or args.num_students < 1:
        print("Error: --num-tutors and --num-students must be positive")
        sys.exit(1)

    asyncio.run(seed(args))


if __name__ == "__main__":
    main()
