"""
Time helpers shared by models, services and the change feed
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1)


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (all columns are stored in UTC)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a stored UTC datetime as an ISO-8601 string"""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat()


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an ISO-8601 timestamp (as emitted by to_utc_isoformat) into a naive
    UTC datetime. A trailing 'Z' or explicit offset is honored.

    Raises:
        ValueError: If the string is not a valid timestamp
    """
    value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def normalize_watermark(value: Optional[datetime]) -> datetime:
    """Watermarks default to the epoch and are compared as naive UTC"""
    if value is None:
        return EPOCH
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def seconds_ago(seconds: int) -> datetime:
    return utc_now() - timedelta(seconds=seconds)
