import json
import os
import sys
from typing import Any, NamedTuple

import pytest

# Ensure the backend root (containing the `playroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from playroom.config import Config  # noqa: E402
from playroom.core.scheduler import ManualScheduler  # noqa: E402
from playroom.server import create_app  # noqa: E402


class Broadcast(NamedTuple):
    room_id: str
    event: str
    payload: dict
    exclude_id: Any
    to: Any


class Recorder:
    """Stands in for the transport's broadcast callback."""

    def __init__(self) -> None:
        self.calls: list[Broadcast] = []

    def __call__(self, room_id, event, payload, exclude_id=None, to=None) -> None:
        self.calls.append(Broadcast(room_id, event, payload, exclude_id, to))

    def events(self, name: str) -> list[Broadcast]:
        return [c for c in self.calls if c.event == name]

    def last(self, name: str) -> Broadcast | None:
        matches = self.events(name)
        return matches[-1] if matches else None

    def clear(self) -> None:
        self.calls.clear()


TEST_SONGS = {
    "songs": [
        {"id": f"song-{year}", "title": f"Song {year}", "artist": "Test Artist", "year": year}
        for year in range(1960, 2020, 5)
    ]
}


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def flask_app(tmp_path, scheduler):
    (tmp_path / "timeline_songs.json").write_text(json.dumps(TEST_SONGS), encoding="utf-8")

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test-secret"
        SOCKETIO_ASYNC_MODE = "threading"
        TRUST_PROXY_HEADERS = False
        DATA_DIR = str(tmp_path)
        STATS_DEBOUNCE_SEC = 0
        ROOM_SWEEP_INTERVAL_SEC = 0

    application, _socketio = create_app(TestConfig, scheduler=scheduler)
    yield application
    application.extensions["playroom"].shutdown()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app):
    socketio = flask_app.extensions["socketio"]
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        if test_client.is_connected():
            test_client.disconnect()


@pytest.fixture()
def sio_client(make_sio_client):
    return make_sio_client()
