"""Recurrence calculator.

Turns a reminder's due spec (a fixed instant or a cron-style rule) plus a
reference instant into the next concrete fire instant. Everything here is
pure: the same ``(due_spec, after)`` always yields the same answer, which
is what lets the daemon recompute schedules after a crash or restart.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadDateError, CroniterError, croniter

from nudge.scheduler.errors import MalformedRule

# Rules that match rarely (Feb 29) still terminate within this horizon.
SEARCH_HORIZON_YEARS = 8

DEFAULT_TIMEZONE = "UTC"

_INSTANT_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


@dataclass(frozen=True)
class FixedInstant:
    """A one-shot due spec."""

    at: datetime

    def __post_init__(self):
        if self.at.tzinfo is None:
            raise ValueError("FixedInstant requires a timezone-aware datetime")


@dataclass(frozen=True)
class RecurrenceRule:
    """A five-field cron expression evaluated in an IANA time zone."""

    expression: str
    timezone: str = DEFAULT_TIMEZONE


DueSpec = Union[FixedInstant, RecurrenceRule]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_rule(expression: str, tz: str = DEFAULT_TIMEZONE) -> RecurrenceRule:
    """Validate a cron expression and zone, returning the rule.

    A rule that parses but never matches (``0 0 31 2 *``) is accepted here;
    ``next_occurrence`` reports it as exhausted.

    Raises:
        MalformedRule: wrong field count, bad field syntax, or unknown zone.
    """
    expression = " ".join(expression.split())
    if not expression:
        raise MalformedRule("Empty recurrence expression")
    if not expression.startswith("@") and len(expression.split(" ")) != 5:
        raise MalformedRule(
            f"Invalid cron expression '{expression}': expected 5 fields "
            "(minute hour day-of-month month day-of-week)"
        )

    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise MalformedRule(f"Unknown time zone: {tz}") from exc

    try:
        croniter(expression, datetime.now(zone))
    except CroniterBadDateError:
        pass
    except (CroniterError, ValueError, TypeError, KeyError) as exc:
        raise MalformedRule(f"Invalid cron expression '{expression}': {exc}") from exc

    return RecurrenceRule(expression=expression, timezone=tz)


def next_occurrence(due_spec: DueSpec, after: datetime) -> Optional[datetime]:
    """Return the earliest fire instant strictly after ``after``, in UTC.

    ``None`` means there are no further occurrences: the fixed instant has
    passed, the rule found no match within the search horizon, or the rule
    stored on disk is malformed.
    """
    if isinstance(due_spec, FixedInstant):
        if due_spec.at > after:
            return due_spec.at.astimezone(timezone.utc)
        return None

    if isinstance(due_spec, RecurrenceRule):
        return _next_rule_match(due_spec, after)

    raise TypeError(f"Unsupported due spec: {due_spec!r}")


def _next_rule_match(rule: RecurrenceRule, after: datetime) -> Optional[datetime]:
    try:
        zone = ZoneInfo(rule.timezone)
        itr = croniter(
            rule.expression,
            after.astimezone(zone),
            day_or=True,
            max_years_between_matches=SEARCH_HORIZON_YEARS,
        )
        candidate = itr.get_next(datetime)
        # croniter truncates sub-minute precision of the start time
        while candidate <= after:
            candidate = itr.get_next(datetime)
    except (CroniterError, ZoneInfoNotFoundError, ValueError, TypeError, KeyError, OverflowError):
        return None
    return candidate.astimezone(timezone.utc)


def parse_instant(text: str, tz: str = DEFAULT_TIMEZONE) -> datetime:
    """Parse a user-supplied date/time; naive values are read in ``tz``.

    Raises:
        ValueError: if no supported format matches.
    """
    text = text.strip()
    try:
        zone = ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {tz}") from exc

    parsed: Optional[datetime] = None
    for fmt in _INSTANT_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(expand_utc_suffix(text))
        except ValueError:
            raise ValueError(
                f"Unable to parse date: {text}. Try format like '2024-12-31 15:30'"
            ) from None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(timezone.utc)


def expand_utc_suffix(text: str) -> str:
    # fromisoformat only accepts a trailing Z from Python 3.11 on
    if text[-1:] in ("Z", "z"):
        return text[:-1] + "+00:00"
    return text


def parse_duration(duration_str: str) -> Optional[timedelta]:
    """Parse a duration string like '30m', '1h', '2d' into timedelta."""
    match = re.match(r"^(\d+)([smhd])$", duration_str.strip().lower())
    if not match:
        return None

    value = int(match.group(1))
    unit = match.group(2)

    if unit == "s":
        return timedelta(seconds=value)
    elif unit == "m":
        return timedelta(minutes=value)
    elif unit == "h":
        return timedelta(hours=value)
    elif unit == "d":
        return timedelta(days=value)
    return None
