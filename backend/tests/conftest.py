import os
import sys
import pytest

# Ensure the backend root (containing the `quizlive` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from quizlive import create_app, socketio
from quizlive.services.quiz import Room
from quizlive.store import MemoryBackend, SessionStore

NAMESPACE = '/ws'


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    REDIS_URL = None
    SOCKETIO_NAMESPACE = NAMESPACE
    QUESTION_REJECT_POLICY = 'drop'
    REPORT_UNAUTHORIZED = False
    ENFORCE_DEADLINE = False


class FakeClock:
    """Epoch-ms clock the tests move by hand."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingBroadcaster:
    def __init__(self):
        self.session_events = []
        self.direct_events = []

    def to_session(self, pin, event, payload=None):
        self.session_events.append((pin, event, payload))

    def to_connection(self, sid, event, payload=None):
        if sid:
            self.direct_events.append((sid, event, payload))

    def session_named(self, event):
        return [payload for _, name, payload in self.session_events if name == event]

    def direct_named(self, event, sid=None):
        return [payload for to, name, payload in self.direct_events
                if name == event and (sid is None or to == sid)]


def make_questions(count=3, time_limit=20):
    return [
        {
            'question': f'Question {i + 1}?',
            'options': ['A', 'B', 'C', 'D'],
            'correctIndex': i % 4,
            'timeLimitSec': time_limit,
            'explanation': f'Because {i + 1}',
        }
        for i in range(count)
    ]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def store():
    return SessionStore(MemoryBackend(), ttl=60, prefix='test:state:')


@pytest.fixture()
def room(broadcaster, store, clock):
    r = Room('123456', broadcaster, store=store, host_sid='host', clock=clock)
    r.load_quiz('host', make_questions(3))
    return r


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['quiz_registry']


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, namespace=NAMESPACE)
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


def received(sio_client, event=None):
    """Drain the client's inbox, optionally keeping only ``event`` payloads."""
    packets = sio_client.get_received(NAMESPACE)
    if event is None:
        return packets
    return [pkt['args'][0] if pkt['args'] else None for pkt in packets if pkt['name'] == event]


