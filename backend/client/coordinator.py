"""
Keeps the device's local store and the user's cloud copy in step.

One coordinator exists per signed-in session (start() after sign-in, stop()
on sign-out). It reacts to four triggers:

- a local edit: debounced, then pushed
- the periodic poll: pulls remote changes, but only when that cannot
  clobber edits made on this device
- upload(): push right away
- download(): pull, or report a conflict when both sides hold different data

Only one network operation runs at a time. A trigger that arrives while
another sync is running is dropped, the last push to reach the server wins.
"""
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from client.api import SyncApiClient, SyncError
from client.conflict import ConflictInfo, Resolution, detect_conflict, has_tracked_data
from client.local_store import ChangeEvent, LocalStore, WriteOrigin
from client.payload import (
    apply_payload, collect_payload, local_tracked_counts, local_tracked_fingerprint,
    tracked_fingerprint,
)
from client.scheduler import APSchedulerScheduler, Scheduler
from client.settings import SyncSettings

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


@dataclass
class SyncOutcome:
    ok: bool
    # pushed | pulled | restored | noop | skipped | diverged | conflict | busy | error
    action: str
    error: Optional[str] = None
    conflict: Optional[ConflictInfo] = None
    last_sync: Optional[str] = None


class SyncCoordinator:
    def __init__(self, store: LocalStore, api, scheduler: Scheduler,
                 settings: Optional[SyncSettings] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.api = api
        self.scheduler = scheduler
        self.settings = settings or SyncSettings()
        self.clock = clock

        self.state = SyncState.IDLE
        self._guard = threading.Lock()
        self._timer_lock = threading.Lock()
        self._debounce_job = None
        self._poll_job = None
        self._unsubscribe = None

        # lastSync of the remote copy as of our last successful fetch/push
        self.last_known_remote_version: Optional[str] = None
        # tracked arrays as they were when local and remote last agreed
        self.last_synced_fingerprint: Optional[str] = None
        self.last_local_edit_at: Optional[float] = None

        self.last_sync_time: Optional[datetime] = None
        self.last_error: Optional[str] = None
        # remote moved on while this device has its own unsynced edits
        self.diverged = False
        self.pending_conflict: Optional[ConflictInfo] = None
        self._pending_remote = None

    # ---------- lifecycle ----------

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self):
        if self.running:
            return
        self._unsubscribe = self.store.subscribe(self._on_store_change)
        self._poll_job = self.scheduler.call_every(self.settings.poll_seconds, self.poll)
        logger.info("Sync started (poll every %ss)", self.settings.poll_seconds)

    def stop(self):
        """End of the session: cancels the timers and shuts the scheduler down."""
        if self.running:
            self._unsubscribe()
            self._unsubscribe = None
            with self._timer_lock:
                if self._debounce_job is not None:
                    self._debounce_job.cancel()
                    self._debounce_job = None
                if self._poll_job is not None:
                    self._poll_job.cancel()
                    self._poll_job = None
            logger.info("Sync stopped")
        self.scheduler.shutdown()

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "lastSyncTime": self.last_sync_time,
            "error": self.last_error,
            "diverged": self.diverged,
            "conflict": self.pending_conflict,
        }

    # ---------- trigger 1: local edits ----------

    def _on_store_change(self, event: ChangeEvent):
        # our own pulls and "clear data" are not edits to upload
        if event.origin is not WriteOrigin.LOCAL:
            return
        self.last_local_edit_at = self.clock()
        self._arm_debounce()

    def _arm_debounce(self):
        with self._timer_lock:
            if self._debounce_job is not None:
                self._debounce_job.cancel()
            self._debounce_job = self.scheduler.call_later(
                self.settings.debounce_seconds, self._debounce_fired
            )

    def _cancel_debounce(self):
        with self._timer_lock:
            if self._debounce_job is not None:
                self._debounce_job.cancel()
                self._debounce_job = None

    def _debounce_fired(self):
        with self._timer_lock:
            self._debounce_job = None
        outcome = self._guarded(self._push)
        if outcome.action == "busy":
            # edits are still unsynced, try again after another quiet period
            self._arm_debounce()
        return outcome

    # ---------- trigger 2: periodic poll ----------

    def _edit_pending(self) -> bool:
        if self._debounce_job is not None:
            return True
        if self.last_local_edit_at is None:
            return False
        return self.clock() - self.last_local_edit_at < self.settings.edit_grace_seconds

    def poll(self) -> SyncOutcome:
        if self._edit_pending():
            return SyncOutcome(True, "skipped")
        return self._guarded(self._poll)

    def _poll(self) -> SyncOutcome:
        try:
            remote = self.api.fetch()
        except SyncError as e:
            # background heartbeat: never surfaced to the user
            logger.debug("Poll failed: %s", e)
            return SyncOutcome(False, "error", error=str(e))

        if remote.last_sync == self.last_known_remote_version:
            return SyncOutcome(True, "noop", last_sync=remote.last_sync)
        if remote.data is None:
            self.last_known_remote_version = remote.last_sync
            return SyncOutcome(True, "noop")

        remote_fp = tracked_fingerprint(remote.data)
        local_fp = local_tracked_fingerprint(self.store)
        if remote_fp == local_fp:
            self.last_known_remote_version = remote.last_sync
            self.last_synced_fingerprint = remote_fp
            self.diverged = False
            return SyncOutcome(True, "noop", last_sync=remote.last_sync)

        local_untouched = (
            local_fp == self.last_synced_fingerprint or not any(local_tracked_counts(self.store))
        )
        if not local_untouched:
            if not self.diverged:
                logger.info("Remote changed (%s) while local has unsynced edits", remote.last_sync)
            self.diverged = True
            return SyncOutcome(True, "diverged", last_sync=remote.last_sync)

        self._apply_remote(remote.data, remote.last_sync)
        logger.info("Pulled remote changes (%s)", remote.last_sync)
        return SyncOutcome(True, "pulled", last_sync=remote.last_sync)

    # ---------- trigger 3: manual push ----------

    def upload(self) -> SyncOutcome:
        return self._guarded(lambda: self._push(manual=True))

    def _push(self, manual: bool = False) -> SyncOutcome:
        if manual:
            self._cancel_debounce()
        payload = collect_payload(self.store)
        try:
            last_sync = self.api.push(payload)
        except SyncError as e:
            return self._failed("Push", e)
        self.last_known_remote_version = last_sync
        self.last_synced_fingerprint = tracked_fingerprint(payload)
        self.diverged = False
        self._mark_synced()
        logger.info("Pushed local data (%s)", last_sync)
        return SyncOutcome(True, "pushed", last_sync=last_sync)

    # ---------- trigger 4: manual pull + conflict resolution ----------

    def download(self) -> SyncOutcome:
        return self._guarded(self._download)

    def _download(self) -> SyncOutcome:
        try:
            remote = self.api.fetch()
        except SyncError as e:
            return self._failed("Download", e)

        local = collect_payload(self.store)
        if remote.data is None or (
            not has_tracked_data(remote.data) and has_tracked_data(local)
        ):
            # nothing in the cloud worth replacing local data with
            self.last_known_remote_version = remote.last_sync
            return SyncOutcome(True, "noop", last_sync=remote.last_sync)

        conflict = detect_conflict(local, remote.data)
        if conflict is not None:
            self.pending_conflict = conflict
            self._pending_remote = remote
            logger.info("Download needs a decision: %s", conflict)
            return SyncOutcome(True, "conflict", conflict=conflict, last_sync=remote.last_sync)

        self._apply_remote(remote.data, remote.last_sync)
        return SyncOutcome(True, "pulled", last_sync=remote.last_sync)

    def resolve_conflict(self, resolution: Resolution) -> SyncOutcome:
        if self._pending_remote is None:
            raise ValueError("no conflict to resolve")
        resolution = Resolution(resolution)
        if resolution is Resolution.USE_CLOUD:
            outcome = self._guarded(self._adopt_pending_remote)
        else:
            # bring the cloud in line, or the next download asks again
            outcome = self._guarded(lambda: self._push(manual=True))
        if outcome.ok:
            self.pending_conflict = None
            self._pending_remote = None
        return outcome

    def _adopt_pending_remote(self) -> SyncOutcome:
        remote = self._pending_remote
        self._apply_remote(remote.data, remote.last_sync)
        return SyncOutcome(True, "pulled", last_sync=remote.last_sync)

    # ---------- history / rollback ----------

    def history(self) -> list:
        try:
            return self.api.snapshots()
        except SyncError as e:
            logger.warning("Could not load snapshot history: %s", e)
            return []

    def rollback(self, saved_at: str) -> SyncOutcome:
        return self._guarded(lambda: self._rollback(saved_at))

    def _rollback(self, saved_at: str) -> SyncOutcome:
        try:
            restored = self.api.rollback(saved_at)
        except SyncError as e:
            return self._failed("Rollback", e)
        self._apply_remote(restored.data, restored.last_sync)
        logger.info("Rolled back to snapshot %s", saved_at)
        return SyncOutcome(True, "restored", last_sync=restored.last_sync)

    # ---------- helpers ----------

    def _guarded(self, op: Callable[[], SyncOutcome]) -> SyncOutcome:
        if not self._guard.acquire(blocking=False):
            return SyncOutcome(False, "busy")
        self.state = SyncState.SYNCING
        try:
            return op()
        finally:
            self.state = SyncState.IDLE
            self._guard.release()

    def _apply_remote(self, data, last_sync):
        apply_payload(self.store, data, WriteOrigin.PULL)
        self.last_known_remote_version = last_sync
        self.last_synced_fingerprint = tracked_fingerprint(data)
        self.diverged = False
        self.pending_conflict = None
        self._pending_remote = None
        self._mark_synced()

    def _mark_synced(self):
        self.last_sync_time = datetime.now(timezone.utc)
        self.last_error = None

    def _failed(self, what: str, error: SyncError) -> SyncOutcome:
        self.last_error = str(error)
        logger.warning("%s failed: %s", what, error)
        return SyncOutcome(False, "error", error=str(error))


def create_coordinator(token: str, store: Optional[LocalStore] = None,
                       settings: Optional[SyncSettings] = None) -> SyncCoordinator:
    """Wire a coordinator for a freshly signed-in session."""
    settings = settings or SyncSettings()
    store = store or LocalStore(settings.local_store_path)
    api = SyncApiClient(settings.base_url, token, settings.request_timeout)
    return SyncCoordinator(store, api, APSchedulerScheduler(), settings)
