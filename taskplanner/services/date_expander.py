"""
Date Expander

Maps a recurrence rule and a date window to the calendar dates on which an
occurrence falls. Pure and deterministic: no I/O and no state kept between calls.
"""
from datetime import date, datetime, time, timedelta
from typing import List, Optional, Union

from taskplanner.models.recurrence_rule import EndType, Frequency, RecurrenceRule

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def _months_between(earlier: date, later: date) -> int:
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def expand_rule_to_dates(
    rule: RecurrenceRule,
    window_start: DateLike,
    window_end: DateLike,
    anchor: Optional[DateLike] = None,
) -> List[date]:
    """
    Expand a recurrence rule to the occurrence dates inside ``[window_start, window_end]``.

    Args:
        rule: A structurally valid recurrence rule
        window_start: First day of the window (inclusive)
        window_end: Last day of the window (inclusive)
        anchor: Original start of the series; fixes the day-of-month for MONTHLY
            and the phase of DAILY/WEEKLY intervals

    Returns:
        Ascending, duplicate-free list of dates
    """
    start = _as_date(window_start)
    end = _as_date(window_end)
    anchor_date = _as_date(anchor) if anchor is not None else None

    # Offsets are measured from the anchor so that runs on different days agree
    # on which weeks/days belong to the series. An anchor after the window start
    # cannot be an origin, so the window start is used instead.
    origin = anchor_date if anchor_date is not None and anchor_date <= start else start
    day_of_month = (anchor_date or start).day
    weekdays = rule.weekday_indexes()

    limit = rule.count if rule.end_type == EndType.COUNT else None
    until = rule.until_date if rule.end_type == EndType.UNTIL else None

    dates: List[date] = []
    current = start
    while current <= end:
        if limit is not None and len(dates) >= limit:
            break
        if until is not None and current > until:
            break

        offset = (current - origin).days

        if rule.frequency == Frequency.DAILY:
            include = offset % rule.interval == 0
        elif rule.frequency == Frequency.WEEKLY:
            on_week = (offset // 7) % rule.interval == 0
            if weekdays:
                include = current.weekday() in weekdays and on_week
            else:
                include = offset % 7 == 0 and on_week
        elif rule.frequency == Frequency.MONTHLY:
            # No clamping: a month without the anchor's day simply has no occurrence
            month_diff = _months_between(origin, current)
            include = (
                current.day == day_of_month
                and month_diff >= 0
                and month_diff % rule.interval == 0
            )
        else:
            include = False

        if include:
            dates.append(current)
        current += timedelta(days=1)

    return dates


def occurrence_due_at(
    occurrence_date: date,
    rule: RecurrenceRule,
    anchor: Optional[datetime] = None,
) -> datetime:
    """Full due timestamp for an occurrence: the rule's time of day, else the anchor's."""
    clock = rule.clock_time
    if clock is None:
        clock = anchor.time() if isinstance(anchor, datetime) else time(0, 0)
    return datetime.combine(occurrence_date, clock)
