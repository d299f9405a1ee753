from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple

from dateutil.relativedelta import relativedelta
from django.core.exceptions import ValidationError

from core.constants import AMOUNT_DECIMAL_PLACES, AMOUNT_MAX_DIGITS, DEFAULT_PERIOD_DAYS

CENT = Decimal("0.01")

PERIOD_OFFSETS = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(days=7),
    "bi-weekly": relativedelta(days=14),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "semi-annually": relativedelta(months=6),
    "annually": relativedelta(years=1),
}


class DateRange(NamedTuple):
    start_date: datetime
    end_date: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start_date <= instant <= self.end_date

    def days_left(self, now: datetime) -> int:
        """Whole days until the end of the range, 0 once it has passed."""
        if now >= self.end_date:
            return 0
        return (self.end_date - now).days


def calculate_date_range(start_date: datetime, period: str) -> DateRange:
    """Returns the start and end of a budget period beginning at start_date.

    Periods without a calendar rule (including "custom") last 30 days.
    """
    offset = PERIOD_OFFSETS.get(period, relativedelta(days=DEFAULT_PERIOD_DAYS))
    return DateRange(start_date, start_date + offset)


def to_decimal(value) -> Decimal:
    """Converts a stored or submitted amount to Decimal, falling back to 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal(0)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def days_between(start: datetime, end: datetime) -> int:
    """Number of days from start to end, rounded up like a countdown."""
    delta: timedelta = end - start
    days = delta.days
    if delta - timedelta(days=days):
        days += 1
    return days


def clean_amount(value) -> Decimal:
    """Parses a submitted amount that must be positive and fit a money column."""
    amount = to_decimal(value)
    if amount <= 0:
        raise ValidationError("Amount must be a positive number.")
    if amount.as_tuple().exponent < -AMOUNT_DECIMAL_PLACES:
        raise ValidationError(f"Amount can have at most {AMOUNT_DECIMAL_PLACES} decimal places.")
    if amount.adjusted() >= AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES:
        raise ValidationError("Amount is too large.")
    return amount
