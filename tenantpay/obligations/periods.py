"""
Billing period arithmetic.

An obligation period is a calendar month, always stored as the first day of
that month. Reminder timing is derived from a tenant's notice day:

    target period   = this month if today.day < notice_day, else next month
    trigger date    = notice_day - N days within the target period, rolling
                      back into the previous month when that underflows

All functions here are pure; callers pass "today" explicitly so the same
logic serves the daily job, manual runs and tests.
"""
import calendar
from datetime import date, datetime
from typing import List
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

DEFAULT_REMINDER_DAYS_BEFORE = 3

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def normalize_month(value: date) -> date:
    """Collapse any date to the first day of its month."""
    return value.replace(day=1)


def add_months(period: date, months: int) -> date:
    return normalize_month(period) + relativedelta(months=months)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_periods(year: int, months: List[int]) -> List[date]:
    """Turn (year, [1..12]) into period dates, preserving order and dropping repeats."""
    periods: List[date] = []
    for month in months:
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {month}")
        period = date(year, month, 1)
        if period not in periods:
            periods.append(period)
    return periods


def first_unbilled_month(today: date) -> date:
    """The month after the current one; "generate ahead" starts here."""
    return add_months(today, 1)


def consecutive_periods(start: date, count: int) -> List[date]:
    return [add_months(start, offset) for offset in range(count)]


def month_label(period: date) -> str:
    """Human label for a period, e.g. ``July 2025``."""
    return f"{MONTH_NAMES[period.month - 1]} {period.year}"


def local_today(timezone: str) -> date:
    """Current calendar date in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def validate_notice_day(notice_day: int) -> int:
    if notice_day is None or not 1 <= int(notice_day) <= 31:
        raise ValueError(f"notice_day must be between 1 and 31, got {notice_day!r}")
    return int(notice_day)


def target_period(today: date, notice_day: int) -> date:
    """
    Month whose notice day a reminder on ``today`` refers to.

    Flips forward exactly once per month, on the day after ``notice_day``.
    """
    notice_day = validate_notice_day(notice_day)
    if today.day < notice_day:
        return normalize_month(today)
    return add_months(today, 1)


def reminder_trigger_date(
    notice_day: int,
    period: date,
    days_before: int = DEFAULT_REMINDER_DAYS_BEFORE,
) -> date:
    """
    Date the reminder for ``period`` fires.

    ``notice_day - days_before`` within the period's month; when that is zero
    or negative it falls in the previous month, counted back from that month's
    real length (28-31 days). notice_day=1, period=March 2025 -> Feb 26.
    """
    notice_day = validate_notice_day(notice_day)
    if not 1 <= days_before <= 28:
        raise ValueError(f"days_before must be between 1 and 28, got {days_before}")

    period = normalize_month(period)
    reminder_day = notice_day - days_before

    if reminder_day <= 0:
        previous = add_months(period, -1)
        return previous.replace(day=days_in_month(previous.year, previous.month) + reminder_day)

    # notice_day <= 31 and days_before >= 1 keep this within any month
    return period.replace(day=min(reminder_day, days_in_month(period.year, period.month)))


def is_reminder_date(
    today: date,
    notice_day: int,
    days_before: int = DEFAULT_REMINDER_DAYS_BEFORE,
) -> bool:
    period = target_period(today, notice_day)
    return reminder_trigger_date(notice_day, period, days_before) == today


def is_currently_late(status: str, period_month: date, today: date) -> bool:
    """Presentation-only lateness: still pending and the period is in the past."""
    return status == "pending" and normalize_month(period_month) < normalize_month(today)
