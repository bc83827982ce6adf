"""Database connection and queries.

Game snapshots are stored as JSONB next to their version token, so a save is
a single conditional UPDATE.
"""
import logging
from contextlib import contextmanager
from typing import Callable

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from perudo.server.config import DATABASE_CONFIG
from perudo.server.models import Game
from perudo.server.session import GameNotFound, StaleStateError
from perudo.server.stats import Stats

logger = logging.getLogger(__name__)

SCHEMA = '''
    CREATE TABLE IF NOT EXISTS games (
        id          TEXT PRIMARY KEY,
        version     BIGINT NOT NULL,
        status      TEXT NOT NULL,
        state       JSONB NOT NULL,
        updated_at  TIMESTAMP NOT NULL DEFAULT NOW()
    );
    CREATE TABLE IF NOT EXISTS leaderboard (
        id     INTEGER PRIMARY KEY,
        stats  JSONB NOT NULL
    );
'''


@contextmanager
def get_db_connection(config=None):
    """Get a database connection context manager."""
    conn = psycopg2.connect(**(config or DATABASE_CONFIG))
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def get_db_cursor(commit=False, config=None):
    """Get a database cursor context manager."""
    with get_db_connection(config) as conn:
        cursor = conn.cursor(cursor_factory=RealDictCursor)
        try:
            yield cursor
            if commit:
                conn.commit()
        finally:
            cursor.close()


def init_db(config=None):
    """Create tables if they don't exist."""
    with get_db_cursor(commit=True, config=config) as cur:
        cur.execute(SCHEMA)


class PostgresGameStore:
    """Game store backed by PostgreSQL, same interface as the in-memory ``GameStore``."""

    def __init__(self, config=None):
        self.config = config

    def get(self, game_id: str) -> Game:
        with get_db_cursor(config=self.config) as cur:
            cur.execute('SELECT state FROM games WHERE id = %s', (game_id,))
            row = cur.fetchone()
        if not row:
            raise GameNotFound(f"Game {game_id} not found")
        return Game.from_dict(row['state'])

    def create(self, game: Game):
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('''
                INSERT INTO games (id, version, status, state)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (id) DO NOTHING
            ''', (game.id, game.last_updated, game.status.value, Json(game.to_dict())))
            if cur.rowcount == 0:
                raise StaleStateError(f"Game {game.id} already exists")

    def save(self, game: Game, expected_version: int):
        """Store ``game`` only if the stored row is still at ``expected_version``."""
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('''
                UPDATE games
                SET version = %s, status = %s, state = %s, updated_at = NOW()
                WHERE id = %s AND version = %s
            ''', (game.last_updated, game.status.value, Json(game.to_dict()),
                  game.id, expected_version))
            if cur.rowcount == 1:
                return
            cur.execute('SELECT version FROM games WHERE id = %s', (game.id,))
            row = cur.fetchone()
        if not row:
            raise GameNotFound(f"Game {game.id} not found")
        logger.warning("Rejected stale write to game %s (stored %s, expected %s)",
                       game.id, row['version'], expected_version)
        raise StaleStateError(
            f"Game {game.id} changed (version {row['version']}, expected {expected_version})"
        )

    def load_stats(self) -> Stats:
        with get_db_cursor(config=self.config) as cur:
            cur.execute('SELECT stats FROM leaderboard WHERE id = 1')
            row = cur.fetchone()
        return Stats.from_dict(row['stats']) if row else Stats()

    def update_stats(self, fold: Callable[[Stats], Stats]) -> Stats:
        """Apply ``fold`` to the stored stats inside one transaction, holding the row lock."""
        with get_db_cursor(commit=True, config=self.config) as cur:
            cur.execute('''
                INSERT INTO leaderboard (id, stats) VALUES (1, %s)
                ON CONFLICT (id) DO NOTHING
            ''', (Json(Stats().to_dict()),))
            cur.execute('SELECT stats FROM leaderboard WHERE id = 1 FOR UPDATE')
            stats = fold(Stats.from_dict(cur.fetchone()['stats']))
            cur.execute('UPDATE leaderboard SET stats = %s WHERE id = 1',
                        (Json(stats.to_dict()),))
        return stats
