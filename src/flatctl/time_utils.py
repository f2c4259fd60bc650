"""Time expression parsing and history timestamp helpers."""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo

from tzlocal import get_localzone

from flatctl.constants import TIME_OF_DAY_FORMAT
from flatctl.errors import TimeParseError

# Tried in order; the first format consuming the whole string wins.
_ABSOLUTE_FORMATS: tuple[tuple[str, bool], ...] = (
    ("%H:%M", True),
    ("%H:%M:%S", True),
    ("%Y-%m-%d", False),
    ("%Y-%m-%d %H:%M:%S", False),
)

_RELATIVE_UNITS = {
    "d": "days",
    "day": "days",
    "days": "days",
    "h": "hours",
    "hour": "hours",
    "hours": "hours",
    "m": "minutes",
    "minute": "minutes",
    "minutes": "minutes",
    "s": "seconds",
    "second": "seconds",
    "seconds": "seconds",
}
_RELATIVE_WHOLE_RE = re.compile(r"^\s*(?:\d+\s*[A-Za-z]+\s*)+$")
_RELATIVE_TOKEN_RE = re.compile(r"(\d+)\s*([A-Za-z]+)")

USEC_PER_SEC = 1_000_000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def local_timezone() -> tzinfo:
    """Return the system's local time zone."""
    return get_localzone()


def _parse_absolute(text: str, now: datetime) -> datetime | None:
    for fmt, time_only in _ABSOLUTE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if time_only:
            parsed = datetime.combine(now.date(), parsed.time())
        return parsed.replace(tzinfo=now.tzinfo)
    return None


def _parse_relative(text: str) -> timedelta | None:
    if not _RELATIVE_WHOLE_RE.match(text):
        return None

    amounts: dict[str, int] = {}
    for number, unit in _RELATIVE_TOKEN_RE.findall(text):
        key = _RELATIVE_UNITS.get(unit.lower())
        if key is None:
            return None
        # Repeating a unit overrides the earlier value.
        amounts[key] = int(number)

    try:
        return timedelta(**amounts)
    except OverflowError:
        raise TimeParseError(f"Failed to parse '{text}'") from None


def parse_time(text: str, now: datetime | None = None) -> datetime:
    """Parse a --since/--until expression into an aware local datetime.

    Accepted forms, in priority order:
        HH:MM, HH:MM:SS           today at that time
        YYYY-MM-DD                local midnight of that date
        YYYY-MM-DD HH:MM:SS
        "<n><unit> ..."           now minus the summed offset, e.g. "2 days",
                                  "1h 30m"; units d/h/m/s or their long names

    Raises:
        TimeParseError: If neither interpretation applies
    """
    tz = local_timezone()
    if now is None:
        now = datetime.now(tz)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)

    absolute = _parse_absolute(text, now)
    if absolute is not None:
        return absolute

    offset = _parse_relative(text)
    if offset is not None:
        try:
            return now - offset
        except OverflowError:
            raise TimeParseError(f"Failed to parse '{text}'") from None

    raise TimeParseError(f"Failed to parse '{text}'")


def datetime_to_usec(value: datetime) -> int:
    """Convert an aware datetime to microseconds since the epoch."""
    return (value - _EPOCH) // timedelta(microseconds=1)


def format_time_of_day(usec: int, tz: tzinfo | None = None) -> str:
    """Render a microsecond epoch timestamp as local time of day.

    Raises:
        ValueError: If the timestamp is outside the representable range
    """
    try:
        moment = datetime.fromtimestamp(usec // USEC_PER_SEC, tz or local_timezone())
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {usec}") from e
    return moment.strftime(TIME_OF_DAY_FORMAT)


@dataclass(frozen=True)
class TimeRange:
    """Half-open range ``[since, until)``; either bound may be absent."""

    since: datetime | None = None
    until: datetime | None = None

    @property
    def is_bounded(self) -> bool:
        return self.since is not None or self.until is not None

    def contains_usec(self, usec: int) -> bool:
        if self.since is not None and usec < datetime_to_usec(self.since):
            return False
        if self.until is not None and usec >= datetime_to_usec(self.until):
            return False
        return True
