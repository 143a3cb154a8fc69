from datetime import datetime, timedelta, timezone
from typing import Union

# MongoDB stores datetimes with millisecond precision, so everything we hand
# out (lastSync, savedAt) is truncated to the millisecond.
_ONE_MS = timedelta(milliseconds=1)


def utcnow() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (pymongo returns naive by default)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def next_timestamp(previous: Union[datetime, None] = None) -> datetime:
    """
    Current time, bumped past `previous` when the clock has not moved on.
    Keeps lastSync strictly increasing and savedAt unique per user.
    """
    now = utcnow()
    if previous is not None:
        previous = as_utc(previous)
        if now <= previous:
            now = previous + _ONE_MS
    return now


def format_timestamp(dt: datetime) -> str:
    dt = as_utc(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Accepts:
    - '2026-10-19T12:00:00.123Z' (what browsers send from toISOString)
    - '2026-10-19T12:00:00Z' / '2026-10-19T12:00:00+02:00'
    - datetime objects
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"invalid timestamp: {value!r}")
    else:
        raise ValueError(f"invalid timestamp: {value!r}")
    dt = as_utc(dt)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def normalize_timestamp(value: Union[str, datetime]) -> str:
    return format_timestamp(parse_timestamp(value))
