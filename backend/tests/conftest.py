import os
import random
import sys

import pytest

# Ensure the backend root (containing the `housie` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from housie import create_app, socketio
from housie.services.rooms.registry import RoomRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SOCKETIO_NAMESPACE = '/ws'
    CORS_ORIGINS = ['http://localhost:5173']
    CALL_INTERVAL_SEC = 3
    COUNTDOWN_SEC = 3
    COUNTDOWN_TICK_SEC = 1
    MAX_TICKETS_PER_PLAYER = 10
    STRIP_MAX_ATTEMPTS = 50
    HOST_GRACE_SEC = 0
    VERIFY_CLAIMS = False
    ENABLE_SCHEDULER_IN_TESTS = False


class RecordingBroadcaster:
    """Collects outbound events instead of sending them."""

    def __init__(self):
        self.events = []
        self.members = {}

    def to_room(self, room_id, event, *args):
        self.events.append(('room', room_id, event, args))

    def to_sid(self, sid, event, *args):
        if sid is None:
            return
        self.events.append(('sid', sid, event, args))

    def enter(self, sid, room_id):
        self.members.setdefault(room_id, set()).add(sid)

    def named(self, event):
        return [e for e in self.events if e[2] == event]

    def clear(self):
        self.events = []


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def registry(broadcaster):
    reg = RoomRegistry(
        broadcaster,
        countdown_seconds=3,
        host_grace=5,
        rng=random.Random(1234),
    )
    yield reg
    reg.shutdown()


@pytest.fixture()
def calling_room(registry, broadcaster):
    """A room with players A (1 ticket) and B (2 tickets), already calling numbers."""
    room = registry.create_room('Host', 'host-sid', num_players=4, room_name='Friday', ticket_price=10)
    registry.join_room(room.room_id, 'A', 'sid-a', num_tickets=1)
    registry.join_room(room.room_id, 'B', 'sid-b', num_tickets=2)
    strip = registry.offer_strip(room.room_id, 'B', 'sid-b')
    assert strip is not None
    registry.select_tickets(room.room_id, 'B', [0, 1])
    assert registry.start_game(room.room_id, 'host-sid')
    while room.countdown.step():
        pass
    broadcaster.clear()
    return room


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    application.extensions['rooms'].shutdown()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
