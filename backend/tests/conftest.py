import os
import random
import sys
import pytest

# Ensure the backend root (containing the `quizgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizgame import create_app, db, socketio
from quizgame.services.quiz.bank import QuestionBank
from quizgame.services.quiz.engine import SessionEngine
from quizgame.services.quiz.types import GameRules


class TestConfig:
    __test__ = False
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SCORE_STORE = 'sql'
    SUPABASE_URL = 'https://example.supabase.co'
    SUPABASE_KEY = 'anon-test-key'
    STORE_CONFIG_URL = ''
    QUESTION_BANK_PATH = ''
    MAX_LIVES = 3
    QUESTION_DURATION_SEC = 15
    BASE_POINTS = 100
    TIME_BONUS_RATE = 10
    STREAK_BONUS_RATE = 5
    MAX_NAME_LENGTH = 24
    SETTLE_DELAY_SEC = 0
    LEADERBOARD_SIZE = 10
    OPPONENT_HIT_CHANCE = 0.6
    RANDOM_SEED = 1234


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


SAMPLE_QUESTIONS = [
    {'prompt': f'Question {i}?', 'category': 'Cat', 'options': [f'q{i}-a', f'q{i}-b', f'q{i}-c', f'q{i}-d'],
     'correct_index': i % 4}
    for i in range(5)
]


@pytest.fixture()
def bank():
    return QuestionBank.from_items(SAMPLE_QUESTIONS)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def rules():
    return GameRules(max_lives=3, question_duration=15, base_points=100, time_bonus_rate=10, streak_bonus_rate=5)


@pytest.fixture()
def engine(bank, rules, clock):
    return SessionEngine(bank, rules, rng=random.Random(42), clock=clock)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizgame.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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
