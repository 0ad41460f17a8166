#!/usr/bin/env python
"""
Session Job Runner CLI

Runs one of the scheduler's jobs once, outside the API process, and prints its result
as JSON. Useful from cron or for checking what a sweep would pick up right now.
"""

import asyncio
import argparse
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path to import tutorly modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from tutorly.errors import TutorlyError
from tutorly.services.scheduler import run_job, trigger_reminder

JOB_IDS = {
    "expiry": "session_expiry",
    "completion": "session_completion",
    "enrollments": "enrollment_expiry",
}


async def run(args) -> int:
    """Execute the selected job and print its summary"""
    try:
        if args.job == "reminders":
            result = await trigger_reminder(args.hours_ahead)
        else:
            result = await run_job(JOB_IDS[args.job])
    except TutorlyError as e:
        print(f"Error: {e.code}: {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Run a Tutorly session job once",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Cancel sessions whose grace period has passed
  python run_jobs.py expiry

  # Complete sessions running past the duration ceiling
  python run_jobs.py completion

  # Send the 1-hour reminders now
  python run_jobs.py reminders --hours-ahead 1

  # Invalidate month-old class enrollments
  python run_jobs.py enrollments
        """
    )

    subparsers = parser.add_subparsers(dest="job", required=True)
    subparsers.add_parser("expiry", help="Cancel abandoned scheduled sessions")
    subparsers.add_parser("completion", help="Complete overrunning ongoing sessions")
    subparsers.add_parser("enrollments", help="Invalidate expired class enrollments")

    reminders = subparsers.add_parser("reminders", help="Send session and class reminders")
    reminders.add_argument(
        "--hours-ahead",
        type=int,
        choices=[24, 1],
        default=24,
        help="Reminder lookahead in hours (default: 24)",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at INFO level",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
