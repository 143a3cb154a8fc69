import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass(frozen=True)
class SyncSettings:
    base_url: str = field(default_factory=lambda: os.getenv("SYNC_BASE_URL", "http://localhost:5000"))
    # quiet period after the last local edit before pushing
    debounce_seconds: float = field(default_factory=lambda: _env_float("SYNC_DEBOUNCE_SECONDS", 2.0))
    poll_seconds: float = field(default_factory=lambda: _env_float("SYNC_POLL_SECONDS", 10.0))
    # polls right after a local edit are skipped so they cannot race the push
    edit_grace_seconds: float = field(default_factory=lambda: _env_float("SYNC_EDIT_GRACE_SECONDS", 5.0))
    request_timeout: float = field(default_factory=lambda: _env_float("SYNC_REQUEST_TIMEOUT", 10.0))
    local_store_path: str | None = field(default_factory=lambda: os.getenv("LOCAL_STORE_PATH") or None)
