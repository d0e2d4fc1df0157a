"""Reminder data model and schedule evaluation.

A reminder is either recurring (a six-field cron expression evaluated in the
channel's timezone) or one-shot (a naive datetime holding UTC wall time).
Recurring expressions are evaluated with APScheduler's CronTrigger; fields are
ANDed, so a `?` day field simply leaves the other day field in charge.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from apscheduler.triggers.cron import CronTrigger

FIELD_NAMES = ("minute", "hour", "day", "month", "day_of_week", "year")
UNSPECIFIED = "?"
ANY = "*"

# Standard cron: 0=Sunday. APScheduler CronTrigger: 0=Monday.
# Convert numeric values to named days to avoid the mismatch.
_CRON_DOW = {
    "0": "sun",
    "1": "mon",
    "2": "tue",
    "3": "wed",
    "4": "thu",
    "5": "fri",
    "6": "sat",
    "7": "sun",
}


class InvalidSchedule(ValueError):
    """Schedule does not parse or never fires again."""


def _convert_dow(dow: str) -> str:
    """Convert standard cron day_of_week (0=Sun) to APScheduler names."""
    if dow == ANY or dow.startswith("*/"):
        return dow

    parts = dow.split(",")
    converted = []
    for part in parts:
        if "/" not in part and "-" not in part:
            converted.append(_CRON_DOW.get(part, part))
            continue
        if "/" in part:
            range_part, step = part.split("/", 1)
            if "-" in range_part:
                a, b = range_part.split("-", 1)
                converted.append(f"{_CRON_DOW.get(a, a)}-{_CRON_DOW.get(b, b)}/{step}")
            else:
                converted.append(f"{_CRON_DOW.get(range_part, range_part)}/{step}")
            continue
        a, b = part.split("-", 1)
        converted.append(f"{_CRON_DOW.get(a, a)}-{_CRON_DOW.get(b, b)}")
    return ",".join(converted)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CronFields:
    """Schedule options as typed by a user; None means "not supplied"."""

    minute: str | None = None
    hour: str | None = None
    day: str | None = None
    month: str | None = None
    day_of_week: str | None = None
    year: str | None = None

    def expression(self) -> str:
        minute, hour, day, month, dow, year = (
            _given(v)
            for v in (
                self.minute,
                self.hour,
                self.day,
                self.month,
                self.day_of_week,
                self.year,
            )
        )
        # Day of month and day of week constrain each other: when only one is
        # given the other becomes unspecified rather than defaulting to today.
        if day is not None and dow is None:
            dow = UNSPECIFIED
        elif day is None and dow is not None:
            day = UNSPECIFIED
        fields = (minute, hour, day, month, dow, year)
        return " ".join(f or ANY for f in fields)


def _given(value: str | None) -> str | None:
    """Blank options count as not supplied."""
    if value is None:
        return None
    return value.strip() or None


def build_trigger(expr: str, tz: tzinfo) -> CronTrigger:
    """Parse a six-field expression into a CronTrigger bound to tz."""
    parts = expr.split()
    if len(parts) != len(FIELD_NAMES):
        raise InvalidSchedule(
            f"Expected {len(FIELD_NAMES)} fields, got {len(parts)}: {expr!r}"
        )
    values: dict[str, Any] = {}
    for name, value in zip(FIELD_NAMES, parts):
        if value == UNSPECIFIED:
            if name not in ("day", "day_of_week"):
                raise InvalidSchedule(f"'?' is only allowed for day fields: {expr!r}")
            value = ANY
        if name == "day_of_week":
            value = _convert_dow(value)
        values[name] = value
    try:
        return CronTrigger(second=0, timezone=tz, **values)
    except (ValueError, TypeError) as e:
        raise InvalidSchedule(f"Invalid cron expression {expr!r}: {e}") from e


@dataclass(frozen=True, slots=True)
class Recurring:
    expr: str


@dataclass(frozen=True, slots=True)
class Once:
    fire_at: datetime  # naive, UTC wall time

    @property
    def fire_at_utc(self) -> datetime:
        return self.fire_at.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class Reminder:
    message: str
    kind: Recurring | Once

    @staticmethod
    def recurring(message: str, expr: str, tz: tzinfo) -> Reminder:
        """Validate expr against tz; raises InvalidSchedule if it never fires."""
        expr = " ".join(expr.split())
        trigger = build_trigger(expr, tz)
        now = utcnow()
        if trigger.get_next_fire_time(now, now) is None:
            raise InvalidSchedule(f"Schedule {expr!r} has no upcoming fire time")
        return Reminder(message=message, kind=Recurring(expr))

    @staticmethod
    def once_at(message: str, fire_at: datetime) -> Reminder:
        """Aware datetimes are converted to UTC; naive ones are taken as UTC."""
        if fire_at.tzinfo is not None:
            fire_at = fire_at.astimezone(timezone.utc).replace(tzinfo=None)
        return Reminder(message=message, kind=Once(fire_at))

    @staticmethod
    def once_from_cron(message: str, expr: str, tz: tzinfo) -> Reminder:
        """One-shot at the first upcoming instant of expr."""
        trigger = build_trigger(expr, tz)
        now = utcnow()
        first = trigger.get_next_fire_time(now, now)
        if first is None:
            raise InvalidSchedule(f"Schedule {expr!r} has no upcoming fire time")
        return Reminder.once_at(message, first)

    @staticmethod
    def after(message: str, delay: timedelta) -> Reminder:
        return Reminder.once_at(message, utcnow() + delay)


def next_fire_time(kind: Recurring | Once, tz: tzinfo, now: datetime) -> datetime | None:
    """Next instant for kind as an aware datetime.

    Recurring schedules yield the first instant strictly after now, or None
    once exhausted. A one-shot always yields its fire_at, even if it is past.
    """
    if isinstance(kind, Once):
        return kind.fire_at_utc
    trigger = build_trigger(kind.expr, tz)
    # Passing now as the previous fire time makes the result strictly later.
    return trigger.get_next_fire_time(now, now)


def describe(reminder: Reminder, tz: tzinfo, now: datetime | None = None) -> str:
    """Human readable schedule: when it fires next and how often."""
    now = now or utcnow()
    kind = reminder.kind
    if isinstance(kind, Once):
        when = kind.fire_at_utc.astimezone(tz)
        return f"{when:%a, %d %b %Y %H:%M %Z} (One-shot)"
    nxt = next_fire_time(kind, tz, now)
    when_str = f"{nxt:%a, %d %b %Y %H:%M %Z}" if nxt is not None else "never"
    return f"{when_str} (Repeating: {kind.expr})"
