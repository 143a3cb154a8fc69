from typing import Union

from models.snapshot_model import build_snapshot, snapshot_history
from utils.timestamps import format_timestamp, next_timestamp, parse_timestamp


class SnapshotNotFound(LookupError):
    pass


def get_sync_state(store, email: str) -> dict:
    """
    Current payload, lastSync and the snapshot history for one user.
    A user that never pushed gets data=None rather than an error.
    """
    doc = store.find_sync_state(email)
    if not doc or doc.get("data") is None:
        return {"data": None, "lastSync": None, "snapshots": []}

    last_sync = doc.get("lastSync")
    return {
        "data": doc["data"],
        "lastSync": format_timestamp(last_sync) if last_sync else None,
        "snapshots": snapshot_history(doc.get("snapshots")),
    }


def get_snapshot_history(store, email: str) -> list[dict]:
    doc = store.find_sync_state(email)
    return snapshot_history(doc.get("snapshots")) if doc else []


def push_data(store, email: str, profile: dict, data: dict, limit: int) -> str:
    """Replace the user's payload, append a snapshot, trim to `limit`."""
    now = next_timestamp(store.find_last_sync(email))
    snapshot = build_snapshot(data, now)
    store.save_data(email, profile, data, snapshot, now, limit)
    return format_timestamp(now)


def rollback_to(store, email: str, saved_at: Union[str, None]) -> dict:
    """
    Put a snapshot's payload back as the current data. The snapshot list is
    left as it was: the state being replaced is not saved as a new snapshot.
    """
    try:
        target = parse_timestamp(saved_at)
    except ValueError:
        raise SnapshotNotFound(saved_at)

    snap = store.find_snapshot(email, target)
    if snap is None:
        raise SnapshotNotFound(saved_at)

    now = next_timestamp(store.find_last_sync(email))
    if not store.restore_data(email, snap["data"], now):
        raise SnapshotNotFound(saved_at)
    return {"data": snap["data"], "lastSync": format_timestamp(now)}
