"""
Time-Slot Resolver

Pure functions over a session's slot list plus the one place where stored wall-clock
values are converted to instants and back.

Storage convention:
    - Session.date is a calendar day in the business timezone.
    - Each slot is an hour-aligned stamp; only its time-of-day is meaningful and it is
      wall-clock time in the business timezone (e.g. "1970-01-01T14:00:00.000Z").
    - start_time / end_time / ClassOccurrence.date_time are UTC instants.

Anything that cannot be parsed fails open: callers get None (or "N/A") and must treat
the session as still upcoming rather than expired.
"""
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Union

import pytz

from tutorly import config

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

SLOT_DURATION = timedelta(minutes=config.SLOT_DURATION_MINUTES)
GRACE_PERIOD = timedelta(minutes=config.SESSION_GRACE_PERIOD_MINUTES)

SlotValue = Union[str, datetime, time]
DateValue = Union[str, date, datetime]


# Business timezone <-> storage instant conversion


def get_business_timezone(name: Optional[str] = None):
    """Return the pytz timezone used for stored dates and slot times"""
    return pytz.timezone(name or config.BUSINESS_TIMEZONE)


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a stored instant to aware UTC.

    Some backends (SQLite) hand back naive datetimes for timezone-aware columns; instants
    are always written as UTC so a naive value is read as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_business_time(instant: datetime, tz=None) -> datetime:
    """Express a UTC instant as wall-clock time in the business timezone"""
    tz = tz or get_business_timezone()
    return ensure_utc(instant).astimezone(tz)


def localize(day: date, time_of_day: time, tz=None) -> datetime:
    """Interpret a stored (date, wall-clock time) pair and return the UTC instant"""
    tz = tz or get_business_timezone()
    wall_clock = datetime.combine(day, time_of_day.replace(tzinfo=None))
    return tz.localize(wall_clock).astimezone(timezone.utc)


def business_today(now: Optional[datetime] = None, tz=None) -> date:
    """Calendar date in the business timezone"""
    return to_business_time(now or utcnow(), tz).date()


# Parsing


def parse_slot_time(slot: SlotValue) -> time:
    """
    Extract the wall-clock time-of-day from a slot stamp.

    Accepts ISO timestamps (trailing 'Z' allowed), bare "HH:MM[:SS]" strings, datetime
    and time objects. Raises ValueError for anything else.
    """
    if isinstance(slot, datetime):
        return slot.time().replace(tzinfo=None)
    if isinstance(slot, time):
        return slot.replace(tzinfo=None)
    if not isinstance(slot, str) or not slot.strip():
        raise ValueError(f"Unsupported slot value: {slot!r}")

    text = slot.strip()
    if "T" in text or " " in text:
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).time().replace(tzinfo=None)
    return time.fromisoformat(text)


def parse_date(value: DateValue) -> date:
    """Parse a session date; datetimes keep only their calendar day"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


def sorted_slot_times(slots: Optional[Iterable[SlotValue]]) -> List[time]:
    """Parse and sort slots; raises ValueError if any slot is malformed"""
    if not slots:
        return []
    return sorted(parse_slot_time(slot) for slot in slots)


# Resolver operations


def duration_hours(slots: Optional[Iterable[SlotValue]]) -> int:
    """Session length in hours; each slot is one hour"""
    if not slots:
        return 0
    return len(list(slots))


def format_clock(value: Union[time, datetime]) -> str:
    """Render a time as "2:00 PM" """
    text = value.strftime("%I:%M %p")
    return text[1:] if text.startswith("0") else text


def time_range(slots: Optional[Iterable[SlotValue]]) -> str:
    """
    Display range "[first slot, first slot + slot count hours)".

    Returns "N/A" for missing or unparseable slots.
    """
    try:
        times = sorted_slot_times(slots)
    except ValueError:
        logger.warning(f"Unparseable slots for display: {slots!r}")
        return NOT_AVAILABLE

    if not times:
        return NOT_AVAILABLE

    start = datetime.combine(date.min, times[0])
    end = start + SLOT_DURATION * len(times)
    return f"{format_clock(start)} - {format_clock(end)}"


def first_slot_start(day: Optional[DateValue], slots: Optional[Iterable[SlotValue]], tz=None) -> Optional[datetime]:
    """UTC instant at which the session's first slot begins, or None if unknown"""
    try:
        times = sorted_slot_times(slots)
        if not times or day is None:
            return None
        return localize(parse_date(day), times[0], tz)
    except ValueError:
        logger.warning(f"Unparseable session time data: date={day!r} slots={slots!r}")
        return None


def grace_period_end(day: Optional[DateValue], slots: Optional[Iterable[SlotValue]], tz=None) -> Optional[datetime]:
    """
    Instant after which an unstarted session is considered abandoned.

    Last slot's wall-clock time on the session date, plus one slot duration plus the
    grace period, returned in UTC. None when the date or slots cannot be resolved.
    """
    try:
        times = sorted_slot_times(slots)
        if not times or day is None:
            return None
        last_slot_start = localize(parse_date(day), times[-1], tz)
    except ValueError:
        logger.warning(f"Unparseable session time data: date={day!r} slots={slots!r}")
        return None

    return last_slot_start + SLOT_DURATION + GRACE_PERIOD


def is_past_grace_period(
    day: Optional[DateValue],
    slots: Optional[Iterable[SlotValue]],
    now: Optional[datetime] = None,
    tz=None,
) -> bool:
    """True only when the grace period end is known and has been reached"""
    deadline = grace_period_end(day, slots, tz)
    if deadline is None:
        return False
    return ensure_utc(now or utcnow()) >= deadline


def is_upcoming(
    day: Optional[DateValue],
    slots: Optional[Iterable[SlotValue]],
    now: Optional[datetime] = None,
    tz=None,
) -> bool:
    """Whether a scheduled session should still be listed as upcoming"""
    return not is_past_grace_period(day, slots, now, tz)
