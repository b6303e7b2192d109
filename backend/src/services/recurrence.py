"""
Recurrence date arithmetic for recurring event series.

Pure functions shared by the instance materializer and the calendar
projector. All datetimes are naive UTC, matching the model columns.

Rules:
- weekly: advance one week, then snap onto the named weekday of that
  Sunday-start week (time of day preserved)
- monthly: advance one month, then set the day of month to the selector,
  clamped to the last day of the target month
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional

from backend.src.models.event import RecurringType
from backend.src.models.recurring_series import SeriesStatus


# Sunday-start week, index = days since Sunday
WEEKDAYS = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

RECURRING_TYPES = tuple(t.value for t in RecurringType)


def _days_since_sunday(value: datetime) -> int:
    # date.weekday() is Monday=0 .. Sunday=6
    return (value.weekday() + 1) % 7


def add_months(value: datetime, months: int) -> datetime:
    """
    Add calendar months to a datetime, clamping the day to the month length.

    Example:
        >>> add_months(datetime(2024, 1, 31, 9), 1)
        datetime.datetime(2024, 2, 29, 9, 0)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def validate_recurrence(recurring_type: str, recurring_value) -> str:
    """
    Validate a recurrence rule and return the normalized selector.

    Weekday names are normalized to title case ("monday" -> "Monday");
    day-of-month selectors are normalized to their integer string ("05" -> "5").

    Raises:
        ValueError: If the kind is unknown or the selector is out of range
    """
    if recurring_type not in RECURRING_TYPES:
        raise ValueError(
            f"Invalid recurring type '{recurring_type}'. "
            f"Expected one of: {', '.join(RECURRING_TYPES)}"
        )

    raw = str(recurring_value).strip() if recurring_value is not None else ""
    if not raw:
        raise ValueError("Recurring value is required")

    if recurring_type == RecurringType.WEEKLY.value:
        name = raw.capitalize()
        if name not in WEEKDAYS:
            raise ValueError(
                f"Invalid weekday '{recurring_value}'. "
                f"Expected one of: {', '.join(WEEKDAYS)}"
            )
        return name

    try:
        day = int(raw)
    except ValueError:
        raise ValueError(f"Invalid day of month '{recurring_value}'")
    if day < 1 or day > 31:
        raise ValueError(f"Day of month must be between 1 and 31, got {day}")
    return str(day)


def validate_recurrence_anchor(start: datetime, recurring_type: str, recurring_value) -> str:
    """
    Check that a series' first start falls on its own selector.

    Weekly: the start weekday is the selector. Monthly: the start day is the
    selector day, clamped to the length of the start month.

    Returns:
        The normalized selector

    Raises:
        ValueError: If the rule is invalid or the start is off the selector

    Example:
        >>> validate_recurrence_anchor(datetime(2024, 1, 1, 9), "weekly", "monday")
        'Monday'
    """
    selector = validate_recurrence(recurring_type, recurring_value)

    if recurring_type == RecurringType.WEEKLY.value:
        actual = WEEKDAYS[_days_since_sunday(start)]
        if actual != selector:
            raise ValueError(
                f"Start date falls on a {actual}, but the series repeats every {selector}"
            )
        return selector

    expected_day = min(int(selector), calendar.monthrange(start.year, start.month)[1])
    if start.day != expected_day:
        raise ValueError(
            f"Start date falls on day {start.day}, but the series repeats on day "
            f"{expected_day} of this month"
        )
    return selector


def calculate_next_recurring_date(
    current: datetime,
    recurring_type: str,
    recurring_value,
) -> datetime:
    """
    Compute the next occurrence after ``current`` for a recurrence rule.

    Args:
        current: Anchor datetime (start of the latest instance)
        recurring_type: "weekly" or "monthly"
        recurring_value: Weekday name or day of month (1-31)

    Returns:
        Start of the next occurrence, with the anchor's time of day

    Raises:
        ValueError: If the rule is invalid

    Example:
        >>> calculate_next_recurring_date(datetime(2024, 1, 1, 9), "weekly", "Monday")
        datetime.datetime(2024, 1, 8, 9, 0)
    """
    selector = validate_recurrence(recurring_type, recurring_value)

    if recurring_type == RecurringType.WEEKLY.value:
        next_week = current + timedelta(weeks=1)
        target = WEEKDAYS.index(selector)
        return next_week + timedelta(days=target - _days_since_sunday(next_week))

    next_month = add_months(current, 1)
    last_day = calendar.monthrange(next_month.year, next_month.month)[1]
    return next_month.replace(day=min(int(selector), last_day))


def should_create_next_instance(series, last_event, now: Optional[datetime] = None) -> bool:
    """
    Decide whether an automatic trigger should materialize the next instance.

    Policy only: RecurringSeriesService.create_next_instance enforces the
    same conditions and reports each one as a distinct rejection.

    Args:
        series: RecurringSeries
        last_event: Latest instance of the series, or None
        now: Current UTC time (defaults to datetime.utcnow())

    Returns:
        True when the series is active, below its cap, before its end date,
        and the last instance has already ended
    """
    now = now or datetime.utcnow()

    if series.status != SeriesStatus.ACTIVE.value:
        return False

    if series.max_instances and series.total_instances_created >= series.max_instances:
        return False

    if series.end_date and now >= series.end_date:
        return False

    if last_event is not None and last_event.end_datetime > now:
        return False

    return True
