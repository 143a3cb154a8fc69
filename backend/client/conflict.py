from dataclasses import dataclass
from enum import Enum
from typing import Optional

from client.payload import tracked_counts, tracked_fingerprint


class Resolution(str, Enum):
    USE_CLOUD = "cloud"
    KEEP_DEVICE = "local"


@dataclass(frozen=True)
class ConflictInfo:
    """What the "keep cloud / keep device" prompt shows: sizes, not a diff."""
    local_transactions: int
    local_investments: int
    remote_transactions: int
    remote_investments: int


def has_tracked_data(data) -> bool:
    return any(tracked_counts(data))


def detect_conflict(local: dict, remote: Optional[dict]) -> Optional[ConflictInfo]:
    """
    A conflict needs tracked data on both sides that is not the same. In
    every other case one side can simply win without losing anything.
    """
    if not has_tracked_data(local) or not has_tracked_data(remote):
        return None
    if tracked_fingerprint(local) == tracked_fingerprint(remote):
        return None
    lt, li = tracked_counts(local)
    rt, ri = tracked_counts(remote)
    return ConflictInfo(lt, li, rt, ri)
