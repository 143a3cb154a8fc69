import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Any failure talking to the sync endpoint."""


class NotAuthenticated(SyncError):
    pass


class InvalidRequest(SyncError):
    pass


class SnapshotNotFound(SyncError):
    pass


class ServerError(SyncError):
    pass


class TransportError(SyncError):
    pass


@dataclass
class RemoteState:
    data: Optional[dict]
    last_sync: Optional[str]
    snapshots: list = field(default_factory=list)


def raise_for_sync_error(status_code: int, body: Any):
    if status_code < 400:
        return
    body = body if isinstance(body, dict) else {}
    message = body.get("error") or f"HTTP {status_code}"
    if body.get("message"):
        message = f"{message}: {body['message']}"
    if status_code == 401:
        raise NotAuthenticated(message)
    if status_code == 404:
        raise SnapshotNotFound(message)
    if 400 <= status_code < 500:
        raise InvalidRequest(message)
    raise ServerError(message)


def parse_state(body: dict) -> RemoteState:
    return RemoteState(
        data=body.get("data"),
        last_sync=body.get("lastSync"),
        snapshots=body.get("snapshots") or [],
    )


class SyncApiClient:
    """Talks to /api/sync with the session token of the signed-in user."""

    def __init__(self, base_url: str, token: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(str(e)) from e
        try:
            body = response.json()
        except ValueError:
            body = {"error": response.text or f"HTTP {response.status_code}"}
        raise_for_sync_error(response.status_code, body)
        return body

    def fetch(self) -> RemoteState:
        return parse_state(self._request("GET", "/api/sync"))

    def push(self, data: dict) -> str:
        return self._request("POST", "/api/sync", json={"data": data})["lastSync"]

    def rollback(self, saved_at: str) -> RemoteState:
        return parse_state(self._request("POST", "/api/sync", json={"rollbackTo": saved_at}))

    def snapshots(self) -> list:
        return self._request("GET", "/api/sync/snapshots").get("snapshots", [])
