"""
Time helpers
时间工具 - 数据库统一存储无时区的 UTC 时间
"""

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (matches DATETIME columns)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def seconds_from_now(seconds: float) -> datetime:
    """Naive UTC deadline `seconds` from now"""
    return utcnow() + timedelta(seconds=seconds)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a stored naive timestamp so it serializes with an offset"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
