"""Pytest fixtures for Perudo tests."""
import pytest

from perudo.server import app as server_app
from perudo.server.dice import DiceRoller
from perudo.server.engine import GameEngine
from perudo.server.session import GameSessions

from helpers import FakeClock


@pytest.fixture
def rng():
    return DiceRoller(seed=1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(rng, clock):
    return GameEngine(rng=rng, clock=clock)


@pytest.fixture
def sessions(engine, tmp_path):
    return GameSessions(engine=engine, logs_dir=str(tmp_path / 'logs'))


@pytest.fixture
def app(sessions, monkeypatch):
    """Create Flask app for testing."""
    monkeypatch.setattr(server_app, 'sessions', sessions)
    flask_app = server_app.app
    flask_app.config.update({
        'TESTING': True,
    })
    yield flask_app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
