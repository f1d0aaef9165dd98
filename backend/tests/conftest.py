import random

import pytest

from npat.config import Config
from npat.game.registry import RoomRegistry
from npat.game.session import RoomSession
from npat.game.timers import TimerHandle
from npat.server import create_app


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    TRUST_PROXY_HEADERS = False
    SOCKETIO_ASYNC_MODE = "threading"
    COLLECTION_TIMEOUT_SEC = 10
    HOST_REELECTION = True
    ENFORCE_HOST_ACTIONS = True


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def __call__(self, room_id, event, payload, to=None):
        self.events.append((room_id, event, payload, to))

    def names(self):
        return [e[1] for e in self.events]

    def payloads(self, event):
        return [e[2] for e in self.events if e[1] == event]

    def clear(self):
        self.events = []


class ManualScheduler:
    """Keeps timers until a test fires them."""

    def __init__(self):
        self.scheduled = []

    def call_later(self, delay_sec, callback):
        handle = TimerHandle(callback)
        self.scheduled.append((delay_sec, handle))
        return handle

    def fire_all(self):
        for _, handle in list(self.scheduled):
            handle.fire()


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def make_session(publisher, scheduler):
    def _make(players=(), start=False, room_id="ROOM", **kwargs):
        kwargs.setdefault("rng", random.Random(1234))
        session = RoomSession(room_id, publisher, scheduler, **kwargs)
        for idx, name in enumerate(players):
            session.join(f"sid-{name}", name, claim_host=(idx == 0))
        if start:
            session.start()
        publisher.clear()
        return session

    return _make


@pytest.fixture()
def registry(publisher, scheduler):
    return RoomRegistry(publisher, scheduler, rng_factory=lambda: random.Random(99))


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def client(app_and_socketio):
    app, _ = app_and_socketio
    return app.test_client()


@pytest.fixture()
def connect(app_and_socketio):
    app, socketio = app_and_socketio
    clients = []

    def _connect():
        test_client = socketio.test_client(app, flask_test_client=app.test_client())
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass


def answers_for(letter, **overrides):
    """A full answer payload with every category left blank unless overridden."""
    payload = {
        "name": "",
        "surname": "",
        "place": "",
        "animalBird": "",
        "thing": "",
        "movie": "",
        "fruitFlower": "",
        "colorDish": "",
    }
    payload.update({k: v.format(L=letter) for k, v in overrides.items()})
    return payload
