"""
Device-side key/value store, the working copy of everything the user enters.

Values are kept as JSON text under fixed keys, the way browser local storage
holds them. Every write goes through `write_many`, which emits exactly one
ChangeEvent tagged with where the write came from. The sync coordinator uses
that tag to tell user edits (push them) apart from its own pulls (don't).
"""
import json
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class WriteOrigin(str, Enum):
    LOCAL = "local"   # user edit in the UI
    PULL = "pull"     # remote data applied by the coordinator
    RESET = "reset"   # "clear data": local only, never uploaded


@dataclass(frozen=True)
class ChangeEvent:
    keys: tuple
    origin: WriteOrigin


def serialize(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class LocalStore:
    def __init__(self, path: Optional[str] = None):
        self._path = Path(path) if path else None
        self._items: dict[str, str] = {}
        self._listeners: list[Callable[[ChangeEvent], None]] = []
        self._lock = threading.RLock()
        if self._path and self._path.exists():
            self._load()

    def _load(self):
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable local store %s: %s", self._path, e)
            return
        if isinstance(raw, dict):
            self._items = {str(k): str(v) for k, v in raw.items()}

    def _flush(self):
        if not self._path:
            return
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._items, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self._path)

    # ---------- reads ----------

    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # plain strings (locale, currency) are stored unquoted
            return raw

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._items)

    # ---------- writes ----------

    def set(self, key: str, value: Any, origin: WriteOrigin = WriteOrigin.LOCAL):
        self.write_many({key: value}, origin)

    def write_many(self, values: dict, origin: WriteOrigin = WriteOrigin.LOCAL):
        if not values:
            return
        with self._lock:
            for key, value in values.items():
                self._items[key] = value if isinstance(value, str) else serialize(value)
            self._flush()
        self._notify(ChangeEvent(tuple(values), origin))

    def remove(self, *keys: str, origin: WriteOrigin = WriteOrigin.LOCAL):
        with self._lock:
            removed = tuple(k for k in keys if self._items.pop(k, None) is not None)
            if removed:
                self._flush()
        if removed:
            self._notify(ChangeEvent(removed, origin))

    def clear(self, origin: WriteOrigin = WriteOrigin.RESET):
        with self._lock:
            removed = tuple(self._items)
            self._items.clear()
            if removed:
                self._flush()
        if removed:
            self._notify(ChangeEvent(removed, origin))

    # ---------- change notifications ----------

    def subscribe(self, listener: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: ChangeEvent):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)
