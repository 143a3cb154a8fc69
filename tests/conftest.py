import pytest

from app import create_app
from client.api import TransportError, parse_state, raise_for_sync_error
from client.coordinator import SyncCoordinator
from client.local_store import LocalStore
from client.scheduler import ManualScheduler
from client.settings import SyncSettings
from routes.auth_routes import issue_session_token

EMAIL = "ana@example.com"


@pytest.fixture
def app():
    return create_app({
        "TESTING": True,
        "STORAGE_BACKEND": "memory",
        "JWT_SECRET_KEY": "test-secret-key-with-at-least-32-bytes",
        "SNAPSHOT_LIMIT": 20,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user_store(app):
    return app.extensions["user_store"]


@pytest.fixture
def make_headers(app):
    def _make(email=EMAIL, name="Ana", image="https://img.example.com/ana.png"):
        with app.app_context():
            token = issue_session_token(email, name=name, image=image)
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def headers(make_headers):
    return make_headers()


class FlaskSyncApi:
    """SyncApiClient stand-in that goes through the Flask test client."""

    def __init__(self, client, headers):
        self.client = client
        self.headers = headers
        self.calls = []
        self.fail_with = None

    def _call(self, method, path, json=None):
        self.calls.append((method, path))
        if self.fail_with is not None:
            raise self.fail_with
        res = self.client.open(path, method=method, json=json, headers=self.headers)
        body = res.get_json(silent=True) or {}
        raise_for_sync_error(res.status_code, body)
        return body

    def fetch(self):
        return parse_state(self._call("GET", "/api/sync"))

    def push(self, data):
        return self._call("POST", "/api/sync", {"data": data})["lastSync"]

    def rollback(self, saved_at):
        return parse_state(self._call("POST", "/api/sync", {"rollbackTo": saved_at}))

    def snapshots(self):
        return self._call("GET", "/api/sync/snapshots")["snapshots"]

    def pushes(self):
        return sum(1 for method, _ in self.calls if method == "POST")

    def fetches(self):
        return sum(1 for method, path in self.calls if method == "GET" and path == "/api/sync")


@pytest.fixture
def api(client, headers):
    return FlaskSyncApi(client, headers)


@pytest.fixture
def network_down():
    return TransportError("connection refused")


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def settings():
    return SyncSettings(
        base_url="http://sync.test",
        debounce_seconds=2.0,
        poll_seconds=10.0,
        edit_grace_seconds=5.0,
        request_timeout=1.0,
        local_store_path=None,
    )


@pytest.fixture
def local_store():
    return LocalStore()


@pytest.fixture
def coordinator(local_store, api, scheduler, settings):
    coord = SyncCoordinator(local_store, api, scheduler, settings, clock=scheduler.now)
    yield coord
    coord.stop()
