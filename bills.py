"""Recurrence and status engine for bills.

Every function here is pure: records go in as plain mappings with ISO
``YYYY-MM-DD`` date strings and come back as new dicts. The only ambient
input is "today", which callers may pass explicitly; otherwise the current
date in the configured timezone is used.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings

DateLike = Union[str, date]

DUE_SOON_DAYS = 3


class BillFrequency(str, Enum):
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    yearly = "yearly"


class BillType(str, Enum):
    utilities = "utilities"
    subscriptions = "subscriptions"
    insurance = "insurance"
    rent_mortgage = "rent_mortgage"
    loans = "loans"
    phone_internet = "phone_internet"
    memberships = "memberships"
    other = "other"


class BillStatus(str, Enum):
    overdue = "overdue"
    due_today = "due-today"
    due_soon = "due-soon"
    upcoming = "upcoming"


FREQUENCY_LABELS: dict[BillFrequency, str] = {
    BillFrequency.weekly: "Weekly",
    BillFrequency.biweekly: "Every 2 weeks",
    BillFrequency.monthly: "Monthly",
    BillFrequency.yearly: "Yearly",
}

BILL_TYPE_LABELS: dict[BillType, str] = {
    BillType.utilities: "Utilities",
    BillType.subscriptions: "Subscriptions",
    BillType.insurance: "Insurance",
    BillType.rent_mortgage: "Rent/Mortgage",
    BillType.loans: "Loans",
    BillType.phone_internet: "Phone/Internet",
    BillType.memberships: "Memberships",
    BillType.other: "Other",
}

_ANNUAL_MULTIPLIERS: dict[BillFrequency, int] = {
    BillFrequency.weekly: 52,
    BillFrequency.biweekly: 26,
    BillFrequency.monthly: 12,
    BillFrequency.yearly: 1,
}


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def to_date(value: DateLike) -> date:
    """Coerce an ISO string, datetime or date into a calendar date.

    Raises ``ValueError`` for strings that are not ``YYYY-MM-DD``.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _frequency(value: Union[str, BillFrequency]) -> BillFrequency:
    try:
        return BillFrequency(value)
    except ValueError:
        raise ValueError(f"Unknown bill frequency: {value!r}") from None


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int) -> date:
    """Shift ``base`` by whole months, clamping to the target month's last day."""
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def calculate_next_due_date(
    current_due_date: DateLike, frequency: Union[str, BillFrequency]
) -> str:
    """Advance a due date by exactly one period.

    Month and year steps clamp to the last valid day of the target month,
    so 2024-01-31 monthly gives 2024-02-29 and 2024-02-29 yearly gives
    2025-02-28.
    """
    current = to_date(current_due_date)
    freq = _frequency(frequency)
    if freq == BillFrequency.weekly:
        next_date = current + timedelta(days=7)
    elif freq == BillFrequency.biweekly:
        next_date = current + timedelta(days=14)
    elif freq == BillFrequency.monthly:
        next_date = add_months(current, 1)
    else:
        next_date = add_months(current, 12)
    return next_date.isoformat()


def days_until(due_date: DateLike, today: Optional[DateLike] = None) -> int:
    due = to_date(due_date)
    current = to_date(today) if today is not None else local_today()
    return (due - current).days


def status_for_days(days_until_due: int) -> BillStatus:
    if days_until_due < 0:
        return BillStatus.overdue
    if days_until_due == 0:
        return BillStatus.due_today
    if days_until_due <= DUE_SOON_DAYS:
        return BillStatus.due_soon
    return BillStatus.upcoming


def calculate_bill_status(
    bill: Mapping[str, Any], today: Optional[DateLike] = None
) -> dict[str, Any]:
    days_until_due = days_until(bill["next_due_date"], today)
    record = dict(bill)
    record["status"] = status_for_days(days_until_due).value
    record["days_until_due"] = days_until_due
    return record


def calculate_annual_cost(
    amount: Optional[float], frequency: Union[str, BillFrequency]
) -> float:
    if amount is None:
        return 0
    return amount * _ANNUAL_MULTIPLIERS[_frequency(frequency)]


def calculate_monthly_average(
    amount: Optional[float], frequency: Union[str, BillFrequency]
) -> float:
    if amount is None:
        return 0
    freq = _frequency(frequency)
    if freq == BillFrequency.weekly:
        return (amount * 52) / 12
    if freq == BillFrequency.biweekly:
        return (amount * 26) / 12
    if freq == BillFrequency.monthly:
        return amount
    return amount / 12


def get_on_time_rate(on_time_payments: int, total_payments: int) -> int:
    if total_payments == 0:
        return 0
    rate = Decimal(on_time_payments) * 100 / Decimal(total_payments)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def get_streak_status_message(current_streak: int, longest_streak: int) -> str:
    if current_streak == 0:
        return "No streak yet"
    streak = _plural(current_streak, "on-time payment")
    if current_streak == longest_streak:
        return f"{streak} (personal best!)"
    return f"{streak} (best: {longest_streak})"


def get_bill_status_label(status: Union[str, BillStatus], days_until_due: int) -> str:
    status = BillStatus(status)
    if status == BillStatus.overdue:
        return f"{_plural(abs(days_until_due), 'day')} overdue"
    if status == BillStatus.due_today:
        return "Due today"
    if status == BillStatus.due_soon:
        return f"Due in {_plural(days_until_due, 'day')}"
    return f"Due in {days_until_due} days"


@dataclass(frozen=True)
class PaymentOutcome:
    payment_date: date
    due_date: date
    was_on_time: bool
    days_early: int
    days_late: int
    next_due_date: str
    current_streak: int
    longest_streak: int
    total_payments: int
    on_time_payments: int


def record_payment(bill: Mapping[str, Any], payment_date: DateLike) -> PaymentOutcome:
    """Apply one payment to a bill record without mutating it.

    A payment on or before the due date extends the streak; a late one
    resets it. The next due date rolls forward from the bill's own due date.
    """
    paid_on = to_date(payment_date)
    due = to_date(bill["next_due_date"])
    delta = (due - paid_on).days
    was_on_time = delta >= 0

    current_streak = int(bill.get("current_streak") or 0)
    longest_streak = int(bill.get("longest_streak") or 0)
    total_payments = int(bill.get("total_payments") or 0) + 1
    on_time_payments = int(bill.get("on_time_payments") or 0)

    if was_on_time:
        current_streak += 1
        on_time_payments += 1
        longest_streak = max(longest_streak, current_streak)
    else:
        current_streak = 0

    return PaymentOutcome(
        payment_date=paid_on,
        due_date=due,
        was_on_time=was_on_time,
        days_early=max(delta, 0),
        days_late=max(-delta, 0),
        next_due_date=calculate_next_due_date(due, bill["frequency"]),
        current_streak=current_streak,
        longest_streak=longest_streak,
        total_payments=total_payments,
        on_time_payments=on_time_payments,
    )
