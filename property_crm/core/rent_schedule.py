"""
Recurring rent arithmetic.

Every function here is pure: callers pass "today" explicitly (defaulting to the
current UTC date) so cron jobs and tests agree on the same calendar day.
"""
from calendar import monthrange
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple

MAX_DUE_DAY = 28
DEFAULT_REMINDER_DAYS_BEFORE = 3

AGING_BUCKETS = ("current", "1-30", "31-60", "61-90", "90+")
EXPIRY_WINDOWS = ("0-30", "31-60", "61-90", "90+")


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def cap_due_day(day: Optional[int]) -> int:
    """
    Clamp a configured day-of-month to 1..28 so it exists in every month.
    """
    if not day or day < 1:
        return 1
    return min(day, MAX_DUE_DAY)


def _shift_month(year: int, month: int, months: int = 1) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def next_billing_month(today: Optional[date] = None) -> Tuple[int, int]:
    """(year, month) of the month after today's month."""
    today = today or utc_today()
    return _shift_month(today.year, today.month)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    _, last_day = monthrange(year, month)
    return date(year, month, 1), date(year, month, last_day)


def next_payment_due(due_day: Optional[int], today: Optional[date] = None) -> date:
    """
    Next due date for a landlord's configured due day.

    On or after the (capped) due day the date rolls into the following month,
    otherwise it is this month's due day.
    """
    today = today or utc_today()
    day = cap_due_day(due_day)
    if today.day >= day:
        year, month = _shift_month(today.year, today.month)
        return date(year, month, day)
    return date(today.year, today.month, day)


def advance_after_payment(paid_on: date, due_day: Optional[int]) -> date:
    """Due date that follows a rent payment made on `paid_on`."""
    year, month = _shift_month(paid_on.year, paid_on.month)
    return date(year, month, cap_due_day(due_day))


def is_reminder_due(
    status: str,
    due_date: Optional[date],
    reminder_sent: bool,
    today: Optional[date] = None,
    reminder_days_before: Optional[int] = None,
) -> bool:
    if status != "pending" or reminder_sent or due_date is None:
        return False
    today = today or utc_today()
    if reminder_days_before is None:
        reminder_days_before = DEFAULT_REMINDER_DAYS_BEFORE
    return today + timedelta(days=reminder_days_before) == due_date


def days_overdue(due_date: date, today: Optional[date] = None) -> int:
    today = today or utc_today()
    return (today - due_date).days


def aging_bucket(days: int) -> str:
    if days <= 0:
        return "current"
    if days <= 30:
        return "1-30"
    if days <= 60:
        return "31-60"
    if days <= 90:
        return "61-90"
    return "90+"


def expiry_window(days_until_expiry: int) -> str:
    if days_until_expiry <= 30:
        return "0-30"
    if days_until_expiry <= 60:
        return "31-60"
    if days_until_expiry <= 90:
        return "61-90"
    return "90+"


def is_overdue(status: str, due_date: Optional[date], today: Optional[date] = None) -> bool:
    if status != "pending" or due_date is None:
        return False
    today = today or utc_today()
    return due_date < today
