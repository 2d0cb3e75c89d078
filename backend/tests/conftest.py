import os
import sys
import pytest

# Ensure the backend root (containing the `quizzy` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizzy import create_app, db, socketio, registry
from quizzy.services.games.quizzes import OptionSnapshot, QuestionSnapshot, QuizSnapshot
from quizzy.services.games.scheduler import DeadlineHandle

# Option ids of the first question in make_snapshot(); question n adds 10 * n
CORRECT = 11
WRONG = 12


def make_snapshot(questions=2, timer_seconds=20):
    return QuizSnapshot(
        quiz_id=1,
        title='Capitals',
        timer_seconds=timer_seconds,
        questions=tuple(
            QuestionSnapshot(
                text=f'Question {i + 1}?',
                options=(
                    OptionSnapshot(CORRECT + 10 * i, 'right', True),
                    OptionSnapshot(WRONG + 10 * i, 'wrong', False),
                ),
            )
            for i in range(questions)
        ),
    )


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    GAME_CODE_LENGTH = 6
    DEFAULT_TIMER_SECONDS = 20
    MAX_USERNAME_LENGTH = 24
    TIMER_HEARTBEAT_SEC = 0


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualScheduler:
    """Records deadlines instead of sleeping; tests fire them explicitly."""

    def __init__(self):
        self.scheduled = []

    def call_later(self, delay, callback, label=''):
        handle = DeadlineHandle(label)
        self.scheduled.append((handle, delay, callback))
        return handle

    @property
    def pending(self):
        return [entry for entry in self.scheduled if entry[0].pending]

    def fire_pending(self):
        fired = 0
        for handle, _, callback in list(self.scheduled):
            if handle._claim():
                callback()
                fired += 1
        return fired

    def fire_all(self):
        """Run every callback, even cancelled ones, to simulate a stale timer."""
        for _, _, callback in list(self.scheduled):
            callback()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def flask_app(clock, scheduler):
    application = create_app(TestConfig)
    registry.scheduler = scheduler
    registry.clock = clock
    with application.app_context():
        import quizzy.models  # noqa: F401
        db.create_all()
    # Yielded outside any app context so each request or socket event gets
    # its own `g`, and with it its own Flask-Login user.
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register_admin(client, username='admin', password='password'):
    res = client.post('/api/auth/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


def make_quiz_payload(title='Capitals', timer_seconds=20, questions=2):
    bank = [
        ('Capital of France?', ['Berlin', 'Paris', 'Rome'], 1),
        ('Capital of Japan?', ['Tokyo', 'Seoul', 'Beijing'], 0),
        ('Capital of Peru?', ['Quito', 'Bogota', 'Lima'], 2),
    ]
    return {
        'title': title,
        'timer_seconds': timer_seconds,
        'questions': [
            {
                'question_text': text,
                'options': [{'option_text': o, 'is_correct': i == correct} for i, o in enumerate(options)],
            }
            for text, options, correct in bank[:questions]
        ],
    }


@pytest.fixture()
def admin_client(client):
    register_admin(client)
    return client


@pytest.fixture()
def quiz(admin_client):
    res = admin_client.post('/api/quizzes', json=make_quiz_payload())
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make(flask_test_client=None):
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_test_client,
            namespace='/ws',
        )
        test_client.get_received('/ws')  # flush the connected event
        clients.append(test_client)
        return test_client

    yield _make
    for c in clients:
        try:
            if c.is_connected('/ws'):
                c.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def admin_sio(sio_factory, admin_client):
    return sio_factory(flask_test_client=admin_client)
