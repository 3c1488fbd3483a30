import calendar
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(moment: datetime, months: int = 1) -> datetime:
    """Calendar-month arithmetic; the day is clamped to the target month's length."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def to_money(value) -> Decimal:
    """Normalise a number from the database or a gateway payload to 2dp."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def split_fee(amount, fee_percent):
    """Return (platform_fee, seller_amount) for a gross amount."""
    gross = to_money(amount)
    fee = to_money(gross * Decimal(fee_percent) / Decimal(100))
    return fee, gross - fee
