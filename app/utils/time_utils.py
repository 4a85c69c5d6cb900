"""Time helpers

All timestamps are stored as naive UTC datetimes.
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current UTC time as a naive datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(value: datetime) -> datetime:
    """Truncate a datetime to midnight of the same calendar day"""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def to_utc_isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a naive-UTC (or aware) datetime as ISO 8601 with a Z suffix"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
