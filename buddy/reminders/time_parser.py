"""Natural-language time expressions to datetimes and cron recurrences."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from buddy.utils.logging import get_logger

log = get_logger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_DAY_ALT = "|".join(WEEKDAYS)
_CLOCK = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?"
_AT_CLOCK_RE = re.compile(rf"\bat\s+{_CLOCK}", re.I)

_PARTS_OF_DAY = {
    "morning": 9,
    "afternoon": 14,
    "evening": 18,
    "night": 20,
    "midnight": 0,
    "noon": 12,
}


@dataclass(frozen=True)
class ParsedTime:
    when: datetime
    recurrence: str | None = None  # cron expression
    label: str | None = None  # human description of the recurrence

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None


def _hour(hours: str, ampm: str | None) -> int:
    h = int(hours)
    ampm = (ampm or "").lower()
    if ampm == "pm" and h < 12:
        h += 12
    if ampm == "am" and h == 12:
        h = 0
    return h


def _at(now: datetime, hour: int, minute: int) -> datetime:
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _next_occurrence(now: datetime, hour: int, minute: int) -> datetime:
    when = _at(now, hour, minute)
    if when <= now:
        when += timedelta(days=1)
    return when


def _clock(match: re.Match[str], first: int, default_hour: int = 9) -> tuple[int, int]:
    hours, minutes, ampm = match.group(first), match.group(first + 1), match.group(first + 2)
    if hours is None:
        return default_hour, 0
    hour, minute = _hour(hours, ampm), int(minutes or 0)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid clock time {hours}:{minutes or '00'}")
    return hour, minute


def _in_duration(m: re.Match[str], now: datetime) -> ParsedTime:
    amount, unit = int(m.group(1)), m.group(2).lower()
    if unit.startswith("min"):
        delta = timedelta(minutes=amount)
    elif unit.startswith(("hour", "hr")):
        delta = timedelta(hours=amount)
    else:
        delta = timedelta(days=amount)
    return ParsedTime(now + delta)


def _tomorrow(m: re.Match[str], now: datetime) -> ParsedTime:
    hour, minute = _clock(m, 1)
    return ParsedTime(_at(now + timedelta(days=1), hour, minute))


def _today(m: re.Match[str], now: datetime) -> ParsedTime:
    hour, minute = _clock(m, 1)
    return ParsedTime(_next_occurrence(now, hour, minute))


def _recurring_clock(m: re.Match[str], first: int) -> tuple[int, int]:
    """Clock for a recurrence, also accepting an "at H" placed before it."""
    if m.group(first) is None:
        earlier = _AT_CLOCK_RE.search(m.string, 0, m.start())
        if earlier:
            return _clock(earlier, 1)
    return _clock(m, first)


def _every_day(m: re.Match[str], now: datetime) -> ParsedTime:
    hour, minute = _recurring_clock(m, 1)
    return ParsedTime(
        _next_occurrence(now, hour, minute),
        recurrence=f"{minute} {hour} * * *",
        label="daily",
    )


def _every_week(m: re.Match[str], now: datetime) -> ParsedTime:
    day = WEEKDAYS.index(m.group(1).lower())
    hour, minute = _recurring_clock(m, 2)
    days_until = (day - now.weekday()) % 7
    when = _at(now + timedelta(days=days_until), hour, minute)
    if when <= now:
        when += timedelta(days=7)
    # cron counts weekdays from Sunday=0
    return ParsedTime(
        when,
        recurrence=f"{minute} {hour} * * {(day + 1) % 7}",
        label="weekly",
    )


def _every_interval(m: re.Match[str], now: datetime) -> ParsedTime | None:
    amount, unit = int(m.group(1)), m.group(2).lower()
    if unit.startswith("min"):
        if not 1 <= amount < 60:
            return None
        return ParsedTime(
            now + timedelta(minutes=amount),
            recurrence=f"*/{amount} * * * *",
            label=f"every {amount} minutes",
        )
    if not 1 <= amount < 24:
        return None
    return ParsedTime(
        now + timedelta(hours=amount),
        recurrence=f"{now.minute} */{amount} * * *",
        label=f"every {amount} hours",
    )


def _weekday(m: re.Match[str], now: datetime) -> ParsedTime:
    day = WEEKDAYS.index(m.group(1).lower())
    hour, minute = _clock(m, 2)
    days_until = (day - now.weekday()) % 7 or 7
    return ParsedTime(_at(now + timedelta(days=days_until), hour, minute))


def _at_clock(m: re.Match[str], now: datetime) -> ParsedTime:
    hour, minute = _clock(m, 1)
    return ParsedTime(_next_occurrence(now, hour, minute))


def _part_of_day(m: re.Match[str], now: datetime) -> ParsedTime:
    hour = _PARTS_OF_DAY[m.group(1).lower()]
    return ParsedTime(_next_occurrence(now, hour, 0))


# Most specific first: "tomorrow at 5pm" must not be read as a bare "at 5pm"
_PATTERNS: list[tuple[re.Pattern[str], Callable[[re.Match[str], datetime], ParsedTime | None]]] = [
    (re.compile(r"\bin\s+(\d+)\s+(minutes?|mins?|hours?|hrs?|days?)\b", re.I), _in_duration),
    (re.compile(rf"\btomorrow(?:\s+(?:at\s+)?{_CLOCK})?", re.I), _tomorrow),
    (re.compile(rf"\btoday\s+(?:at\s+)?{_CLOCK}", re.I), _today),
    (re.compile(rf"\bevery\s*day(?:\s+(?:at\s+)?{_CLOCK})?", re.I), _every_day),
    (re.compile(rf"\bevery\s+week\s+(?:on\s+)?({_DAY_ALT})(?:\s+at\s+{_CLOCK})?", re.I),
     _every_week),
    (re.compile(r"\bevery\s+(\d+)\s+(minutes?|mins?|hours?|hrs?)\b", re.I), _every_interval),
    (re.compile(rf"\b(?:on\s+|next\s+)?({_DAY_ALT})(?:\s+(?:at\s+)?{_CLOCK})?", re.I), _weekday),
    (_AT_CLOCK_RE, _at_clock),
    (re.compile(r"\b(morning|afternoon|evening|night|midnight|noon)\b", re.I), _part_of_day),
]

_STRIP_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"\bremind\s+me\s+(?:to\s+)?",
        r"\bset\s+(?:a\s+)?reminder\s+(?:to\s+)?",
        r"\breminder\s*:?\s*(?:to\s+)?",
        r"\bdon'?t\s+let\s+me\s+forget\s+(?:to\s+)?",
        r"\bremember\s+to\s+",
        r"\bin\s+\d+\s+(?:minutes?|mins?|hours?|hrs?|days?)\b",
        rf"\bevery\s+week\s+(?:on\s+)?(?:{_DAY_ALT})(?:\s+at\s+{_CLOCK})?",
        r"\bevery\s+\d+\s+(?:minutes?|mins?|hours?|hrs?)\b",
        rf"\bevery\s*day(?:\s+(?:at\s+)?{_CLOCK})?",
        rf"\b(?:tomorrow|today)(?:\s+(?:at\s+)?{_CLOCK})?",
        rf"\b(?:on\s+|next\s+)?(?:{_DAY_ALT})(?:\s+(?:at\s+)?{_CLOCK})?",
        rf"\bat\s+{_CLOCK}",
        r"\b(?:in\s+the\s+|this\s+|at\s+)?(?:morning|afternoon|evening|night|midnight|noon)\b",
    )
]


def parse_time(text: str, now: datetime | None = None) -> ParsedTime | None:
    """First matching expression wins. Returns None when nothing matches."""
    now = now or datetime.now().astimezone()
    for pattern, parser in _PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        try:
            result = parser(match, now)
        except ValueError:
            log.debug("time_parse_rejected", pattern=pattern.pattern)
            continue
        if result is not None:
            return result
    return None


def extract_reminder_text(text: str) -> str:
    """Strip the request phrasing and time expressions, leaving what to remind about."""
    cleaned = text
    for pattern in _STRIP_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"\s{2,}", " ", cleaned).strip(" ,.!")
    # "remind me tomorrow at 9am to go" leaves a dangling "to"
    return re.sub(r"^to\s+", "", cleaned, flags=re.I)


def format_datetime(when: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(when.tzinfo)
    clock = when.strftime("%I:%M %p").lstrip("0")
    if when.date() == now.date():
        return f"Today at {clock}"
    if when.date() == (now + timedelta(days=1)).date():
        return f"Tomorrow at {clock}"
    return f"{when.strftime('%a, %b')} {when.day}, {clock}"


def format_relative(when: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(when.tzinfo)
    seconds = (when - now).total_seconds()
    minutes = round(seconds / 60)
    if minutes < 1:
        return "now"
    if minutes < 60:
        return f"in {minutes} minute{'s' if minutes != 1 else ''}"
    hours = round(seconds / 3600)
    if hours < 24:
        return f"in {hours} hour{'s' if hours != 1 else ''}"
    days = round(seconds / 86400)
    return f"in {days} day{'s' if days != 1 else ''}"
