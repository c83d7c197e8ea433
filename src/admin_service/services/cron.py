"""Cron expression parsing and next-run computation.

Schedules are standard 5-field crontab strings
(``minute hour day-of-month month day-of-week``) evaluated with APScheduler's
:class:`CronTrigger`. When both day-of-month and day-of-week are restricted
a time matching either field fires, as in crontab. Returned datetimes are
timezone-aware UTC.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from apscheduler.triggers.base import BaseTrigger  # type: ignore[import-untyped]
from apscheduler.triggers.combining import OrTrigger  # type: ignore[import-untyped]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]

from admin_service.core.exceptions import ValidationError

_EPSILON = timedelta(microseconds=1)

# crontab numbering: 0 (or 7) = Sunday
_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
_DAY_NUMBERS = {name: idx for idx, name in enumerate(_DAY_NAMES)}


def _day_value(token: str) -> int:
    token = token.strip().lower()
    if token in _DAY_NUMBERS:
        return _DAY_NUMBERS[token]
    value = int(token)
    if not 0 <= value <= 7:
        raise ValueError(f"day of week out of range: {token}")
    return value % 7


def normalize_day_of_week(field: str) -> str:
    """Rewrite a crontab day-of-week field using day names.

    APScheduler counts weekdays from Monday, crontab from Sunday; names are
    unambiguous for both.
    """
    if field in ("*", "?"):
        return "*"
    days: set[int] = set()
    for part in field.split(","):
        base, _, step_str = part.partition("/")
        step = int(step_str) if step_str else 1
        if step < 1:
            raise ValueError(f"invalid step: {part}")
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            low, high = base.split("-", 1)
            start, end = _day_value(low), _day_value(high)
            if high.strip() == "7":
                end = 7
            if start > end:
                raise ValueError(f"invalid day range: {base}")
        else:
            start = _day_value(base)
            end = 6 if step_str else start
        days.update(day % 7 for day in range(start, end + 1, step))
    return ",".join(_DAY_NAMES[day] for day in sorted(days))


def _is_unrestricted(field: str) -> bool:
    return field in ("*", "?")


def parse_schedule(expression: str, tz: str | None = None) -> BaseTrigger:
    """Build a trigger for ``expression``; raise ValidationError when malformed."""
    fields = expression.split()
    if len(fields) != 5:
        raise ValidationError(
            f"Invalid cron expression {expression!r}: expected 5 fields, got {len(fields)}"
        )
    minute, hour, day, month, day_of_week = fields
    try:
        day_of_week = normalize_day_of_week(day_of_week)

        def trigger(day: str, day_of_week: str) -> CronTrigger:
            return CronTrigger(
                minute=minute, hour=hour, day=day, month=month, day_of_week=day_of_week, timezone=tz
            )

        if _is_unrestricted(day) or _is_unrestricted(day_of_week):
            return trigger(day, day_of_week)
        # CronTrigger ANDs the day fields; crontab fires when either matches
        return OrTrigger([trigger(day, "*"), trigger("*", day_of_week)])
    except (ValueError, KeyError, TypeError) as exc:
        raise ValidationError(f"Invalid cron expression {expression!r}: {exc}") from exc


def next_run_after(expression: str, after: datetime, tz: str | None = None) -> datetime | None:
    """Earliest fire time strictly after ``after`` (None if the schedule never fires again)."""
    trigger = parse_schedule(expression, tz)
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    # CronTrigger returns the first time >= start; nudge past ``after`` so an
    # exact match is skipped.
    fire_time = trigger.get_next_fire_time(None, after + _EPSILON)
    if fire_time is None:
        return None
    return fire_time.astimezone(timezone.utc)
