import os
import sys
import pytest

# Ensure the backend root (containing the `quizworld` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizworld import create_app, db, socketio

DATA_DIR = os.path.join(CURRENT_DIR, 'data')


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    BCRYPT_HANDLE_LONG_PASSWORDS = True
    EXPLORE_DURATION_SEC = 300
    QUIZ_DURATION_SEC = 300
    ANSWER_DISPLAY_DELAY_SEC = 0
    COUNTRIES_DATA_FILE = os.path.join(DATA_DIR, 'countries.json')
    COUNTRIES_CACHE_TTL_SEC = 3600
    UPSTREAM_TIMEOUT_SEC = 5
    LEADERBOARD_LIMIT = 50
    VALIDATE_PLAYER_COUNTRY = True
    CORS_ORIGINS = 'http://localhost:3000'


QUESTION_ROWS = [
    ('Which country is home to the Eiffel Tower?', 'FR'),
    ('In which country would you find Machu Picchu?', 'PE'),
    ('Which country is known as the Land of the Rising Sun?', 'JP'),
    ('Which country has Canberra as its capital?', 'AU'),
    ('The Taj Mahal stands in which country?', 'IN'),
]

COUNTRY_NAMES = {'FR': 'France', 'PE': 'Peru', 'JP': 'Japan', 'AU': 'Australia', 'IN': 'India'}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizworld.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def questions(flask_app):
    """Seed a small question set; returns {question_id: answer}."""
    from quizworld.models import Question
    rows = [Question(question_text=text, answer=answer) for text, answer in QUESTION_ROWS]
    db.session.add_all(rows)
    db.session.commit()
    return {q.id: q.answer for q in rows}


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
