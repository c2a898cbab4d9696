import os
import sys
import pytest

# Ensure the backend root (containing the `cupgame` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from cupgame import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    UNDO_WINDOW_SEC = 5
    UI_EVENT_HISTORY_SIZE = 50
    DEFAULT_CUP_FORMATION = '6'
    BRACKET_AUTO_ADVANCE = True


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import cupgame.models  # noqa: F401
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
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


def make_game(client, team1=('Alice', 'Bob'), team2=('Cara', 'Dan'), cup_formation='6'):
    res = client.post('/api/games/create', json={
        'team1_players': [{'name': n} for n in team1],
        'team2_players': [{'name': n} for n in team2],
        'cup_formation': cup_formation,
    })
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def new_game(client):
    def _create(**kwargs):
        return make_game(client, **kwargs)
    return _create
