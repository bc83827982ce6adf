"""Tests for the PostgreSQL store, against a mocked psycopg2 connection."""
from unittest.mock import MagicMock

import pytest

from perudo.server import db
from perudo.server.db import PostgresGameStore
from perudo.server.session import GameNotFound, StaleStateError
from perudo.server.stats import CalzaRecord, Stats

from helpers import make_game


@pytest.fixture
def conn(monkeypatch):
    connection = MagicMock()
    monkeypatch.setattr(db.psycopg2, "connect", MagicMock(return_value=connection))
    return connection


@pytest.fixture
def cursor(conn):
    return conn.cursor.return_value


def test_init_db(conn, cursor):
    db.init_db()
    cursor.execute.assert_called_once_with(db.SCHEMA)
    conn.commit.assert_called_once()
    conn.close.assert_called_once()


def test_get(cursor):
    game = make_game([[4, 4, 1], [2, 3, 5]])
    cursor.fetchone.return_value = {"state": game.to_dict()}
    assert PostgresGameStore().get("test") == game


def test_get_missing(cursor):
    cursor.fetchone.return_value = None
    with pytest.raises(GameNotFound):
        PostgresGameStore().get("test")


def test_create_conflict(conn, cursor):
    cursor.rowcount = 0
    with pytest.raises(StaleStateError):
        PostgresGameStore().create(make_game([[2], [3]]))
    conn.commit.assert_not_called()


def test_save(conn, cursor, engine):
    game = make_game([[2, 3], [4, 5]])
    after = engine.place_bid(game, "p1", 1, 3)
    cursor.rowcount = 1

    PostgresGameStore().save(after, expected_version=game.last_updated)

    params = cursor.execute.call_args[0][1]
    assert params[0] == after.last_updated
    assert params[-2:] == ("test", game.last_updated)
    conn.commit.assert_called_once()


def test_save_stale(cursor):
    cursor.rowcount = 0
    cursor.fetchone.return_value = {"version": 250}
    with pytest.raises(StaleStateError):
        PostgresGameStore().save(make_game([[2], [3]]), expected_version=99)


def test_save_missing(cursor):
    cursor.rowcount = 0
    cursor.fetchone.return_value = None
    with pytest.raises(GameNotFound):
        PostgresGameStore().save(make_game([[2], [3]]), expected_version=99)


def test_stats(cursor):
    cursor.fetchone.return_value = None
    assert PostgresGameStore().load_stats() == Stats()

    stats = Stats(wins={"Amy": 2}, best_calza=CalzaRecord(name="Amy", count=4, bid="4 x 6s"))
    cursor.fetchone.return_value = {"stats": stats.to_dict()}
    assert PostgresGameStore().load_stats() == stats


def test_update_stats(conn, cursor):
    cursor.fetchone.return_value = {"stats": {"wins": {"Amy": 1}, "losses": {}, "best_calza": None}}

    stats = PostgresGameStore().update_stats(
        lambda s: Stats(wins={"Amy": s.wins.get("Amy", 0) + 1}))

    assert stats.wins == {"Amy": 2}
    statements = [c[0][0] for c in cursor.execute.call_args_list]
    assert any("FOR UPDATE" in sql for sql in statements)
    assert "UPDATE leaderboard" in statements[-1]
    payload = cursor.execute.call_args[0][1][0]
    assert payload.adapted == {"wins": {"Amy": 2}, "losses": {}, "best_calza": None}
    # read, fold and write share one transaction
    conn.cursor.assert_called_once()
    conn.commit.assert_called_once()
