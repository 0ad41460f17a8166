"""
Integration tests for the monthly enrollment expiry
"""

import pytest

from tutorly.models import Enrollment, EnrollmentStatus
from tutorly.services.enrollment_sweep import EnrollmentSweepService, one_month_before
from tests.helpers import utc

pytestmark = pytest.mark.integration

NOW = utc(2025, 3, 31, 0, 0)


class TestOneMonthBefore:
    def test_same_day_previous_month(self):
        assert one_month_before(utc(2025, 3, 15, 8, 30)) == utc(2025, 2, 15, 8, 30)

    def test_clamps_to_shorter_month(self):
        assert one_month_before(NOW) == utc(2025, 2, 28, 0, 0)

    def test_wraps_year(self):
        assert one_month_before(utc(2025, 1, 10)) == utc(2024, 12, 10)


class TestEnrollmentSweep:
    async def test_invalidates_enrollments_older_than_a_month(self, session_factory, seed):
        tutor = await seed.tutor()
        tutoring_class = await seed.tutoring_class(tutor)
        stale = await seed.enrollment(await seed.student(), tutoring_class, created_at=utc(2025, 2, 27, 23, 0))
        fresh = await seed.enrollment(await seed.student(), tutoring_class, created_at=utc(2025, 3, 1, 9, 0))
        already = await seed.enrollment(
            await seed.student(), tutoring_class,
            created_at=utc(2025, 1, 5), status=EnrollmentStatus.INVALID,
        )

        sweep = EnrollmentSweepService(session_factory=session_factory, clock=lambda: NOW)
        count = await sweep.run()

        assert count == 1
        assert (await seed.get(Enrollment, stale.id)).status == EnrollmentStatus.INVALID
        assert (await seed.get(Enrollment, fresh.id)).status == EnrollmentStatus.VALID
        assert (await seed.get(Enrollment, already.id)).status == EnrollmentStatus.INVALID

    async def test_second_run_changes_nothing(self, session_factory, seed):
        tutor = await seed.tutor()
        tutoring_class = await seed.tutoring_class(tutor)
        await seed.enrollment(await seed.student(), tutoring_class, created_at=utc(2025, 1, 1))

        sweep = EnrollmentSweepService(session_factory=session_factory, clock=lambda: NOW)

        assert await sweep.run() == 1
        assert await sweep.run() == 0
