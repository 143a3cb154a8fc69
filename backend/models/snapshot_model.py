from datetime import datetime
from typing import Union

from utils.timestamps import as_utc, format_timestamp, normalize_timestamp
from utils.validation import TRACKED_FIELDS


def _tracked_len(data, field: str) -> int:
    value = data.get(field) if isinstance(data, dict) else None
    return len(value) if isinstance(value, list) else 0


def count_tracked(data) -> tuple[int, int]:
    """(transactions, investments) lengths, zero when absent or malformed."""
    return tuple(_tracked_len(data, f) for f in TRACKED_FIELDS)


def build_snapshot(data: dict, saved_at: datetime) -> dict:
    transactions, investments = count_tracked(data)
    return {
        "savedAt": saved_at,
        "transactionsCount": transactions,
        "investmentsCount": investments,
        "data": data,
    }


def _saved_at_key(value) -> Union[str, None]:
    if isinstance(value, datetime):
        return format_timestamp(as_utc(value))
    try:
        return normalize_timestamp(value)
    except ValueError:
        return None


def snapshot_history(snapshots) -> list[dict]:
    """
    Metadata-only view of a user's snapshots, newest first.
    Duplicate savedAt entries (same push stored twice) are listed once.
    """
    seen = set()
    out = []
    for snap in reversed(snapshots or []):
        key = _saved_at_key(snap.get("savedAt"))
        if key is None or key in seen:
            continue
        seen.add(key)
        out.append({
            "savedAt": key,
            "transactionsCount": int(snap.get("transactionsCount", 0)),
            "investmentsCount": int(snap.get("investmentsCount", 0)),
        })
    return out


def find_snapshot(snapshots, saved_at: Union[str, datetime]) -> Union[dict, None]:
    """Exact match on the normalized savedAt string, newest match wins."""
    target = _saved_at_key(saved_at)
    if target is None:
        return None
    for snap in reversed(snapshots or []):
        if _saved_at_key(snap.get("savedAt")) == target:
            return snap
    return None
