"""Time helpers for session scheduling."""

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

REMINDER_LEAD_HOURS = 1
FILL_DEADLINE_LEAD_MINUTES = 5
COMPLETION_DELAY_HOURS = 5


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def hours_before(instant: datetime, hours: float) -> datetime:
    return instant - timedelta(hours=hours)


def minutes_before(instant: datetime, minutes: float) -> datetime:
    return instant - timedelta(minutes=minutes)


def hours_after(instant: datetime, hours: float) -> datetime:
    return instant + timedelta(hours=hours)


def is_future(instant: datetime, now: datetime) -> bool:
    """Return True when ``instant`` is strictly after ``now``."""
    return instant > now


def reminder_time(start: datetime) -> datetime:
    return hours_before(start, REMINDER_LEAD_HOURS)


def fill_deadline(start: datetime) -> datetime:
    return minutes_before(start, FILL_DEADLINE_LEAD_MINUTES)


def completion_time(start: datetime) -> datetime:
    return hours_after(start, COMPLETION_DELAY_HOURS)


def same_calendar_day(first: datetime, second: datetime, timezone_name: str) -> bool:
    """Return True when both instants fall on the same day in the timezone."""
    tz = ZoneInfo(timezone_name)
    return first.astimezone(tz).date() == second.astimezone(tz).date()


def format_session_date_long(instant: datetime, timezone_name: str) -> str:
    """Format an instant for humans, e.g. 'Friday, March 6, 2026 at 7:30 PM PST'."""
    local = instant.astimezone(ZoneInfo(timezone_name))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"  # noqa: PLR2004
    return (
        f"{local:%A}, {local:%B} {local.day}, {local.year} "
        f"at {hour}:{local:%M} {meridiem} {local.tzname()}"
    )


def ensure_utc(instant: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are assumed UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)
