import os
import sys
import pytest

# Ensure the backend root (containing the `dietracker` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from dietracker import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    LOG_LEVEL = 'DEBUG'
    ROOM_CODE_LENGTH = 6
    DEFAULT_GAME_SCORE_LIMIT = 11
    DEFAULT_SINK_POINTS = 3
    DEFAULT_WIN_BY_TWO = True
    AURA_AWARD_THRESHOLD = 8
    LEKING_AWARD_ENABLED = True
    LIVE_MATCH_TTL_HOURS = 24


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import dietracker.models  # noqa: F401
        db.create_all()
    # Requests push their own app context so flask_login's per-request user
    # cache on `g` does not leak between test clients
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
    # Match ids restart with every database, so drop per-match listeners too
    from dietracker.services.matches import session as match_session
    match_session._listeners.clear()
    match_session._replicas.clear()


@pytest.fixture()
def app_ctx(flask_app):
    """For tests that call the services directly."""
    with flask_app.app_context():
        yield flask_app


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    from dietracker.models import User

    def _make(username, nickname=None, password='password'):
        with flask_app.app_context():
            user = User(username=username, nickname=nickname)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            # Load the columns before the session goes away
            db.session.refresh(user)
            return user

    return _make


@pytest.fixture()
def login_client(flask_app, make_user):
    """Returns a test client signed in as a freshly created user."""

    def _login(username, nickname=None):
        user = make_user(username, nickname)
        test_client = flask_app.test_client()
        res = test_client.post('/login', json={'username': username, 'password': 'password'})
        assert res.status_code == 200
        return test_client, user

    return _login


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
