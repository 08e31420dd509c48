"""
Shared utilities.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation


def utc_now() -> datetime:
    """Current time as naive UTC, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC. Naive values are assumed to be UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_amount(value) -> float:
    """
    Parse a monetary amount that may arrive as a number, Decimal or string.

    None and blank strings count as 0. Unparseable strings raise ValueError.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    text = str(value).strip().replace(",", "")
    if not text:
        return 0.0
    try:
        return float(Decimal(text))
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {value!r}")
