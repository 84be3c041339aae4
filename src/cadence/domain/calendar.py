"""Civil-day helpers shared by the scheduler and the classifiers."""

from datetime import UTC, date, datetime, time, timedelta, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cadence.domain.exceptions import ValidationError


@lru_cache(maxsize=32)
def load_timezone(name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone name.

    Raises:
        ValidationError: If the name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone {name!r}") from None


def as_aware(moment: datetime) -> datetime:
    """Naive datetimes are read as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def day_key(moment: datetime, tz: tzinfo) -> date:
    """Project a moment onto the calendar date it falls on in `tz`."""
    return as_aware(moment).astimezone(tz).date()


def start_of_next_day(moment: datetime, tz: tzinfo) -> datetime:
    """First instant of the civil day after the one `moment` falls on."""
    next_day = day_key(moment, tz) + timedelta(days=1)
    return datetime.combine(next_day, time.min, tzinfo=tz)
