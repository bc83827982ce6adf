"""Session layer. Owns the authoritative game record of every room.

Each move is read, applied by the engine and written back with a
compare-and-swap on the game's ``last_updated`` version token, so two moves
racing against the same snapshot cannot both land. AI seats are played here,
outside the engine.
"""
import logging
import threading
from typing import Callable, Optional

from perudo.server.ai import AIPlayer
from perudo.server.config import LOGS_DIR, ROUND_END_DELAY, TURN_TIMEOUT
from perudo.server.dice import DiceRoller
from perudo.server.engine import (
    Challenge, Forfeit, GameEngine, GameError, ProposeBid, StartGame, StartNextRound,
)
from perudo.server.game_logger import GameLogger
from perudo.server.models import CallType, Game, GameStatus, PlayerRef
from perudo.server.stats import Stats, leaderboard, record_result

logger = logging.getLogger(__name__)


class StaleStateError(Exception):
    """Raised when a save races with another writer of the same game."""


class GameNotFound(Exception):
    """Raised when a room id is unknown to the store."""


class TimerNotExpired(GameError):
    """Raised when a timed step is requested before its delay has run out."""
    code = "timer_not_expired"


class GameStore:
    """In-memory game records with optimistic version checks."""

    def __init__(self):
        self._games = {}
        self._stats = Stats()
        self._lock = threading.Lock()

    def get(self, game_id: str) -> Game:
        with self._lock:
            game = self._games.get(game_id)
        if game is None:
            raise GameNotFound(f"Game {game_id} not found")
        return game

    def create(self, game: Game):
        with self._lock:
            if game.id in self._games:
                raise StaleStateError(f"Game {game.id} already exists")
            self._games[game.id] = game

    def save(self, game: Game, expected_version: int):
        """Store ``game`` only if the stored copy is still at ``expected_version``."""
        with self._lock:
            stored = self._games.get(game.id)
            if stored is None:
                raise GameNotFound(f"Game {game.id} not found")
            if stored.last_updated != expected_version:
                raise StaleStateError(
                    f"Game {game.id} changed (version {stored.last_updated}, expected {expected_version})"
                )
            self._games[game.id] = game

    def load_stats(self) -> Stats:
        with self._lock:
            return self._stats

    def update_stats(self, fold: Callable[[Stats], Stats]) -> Stats:
        """Apply ``fold`` to the stored stats as one read-modify-write."""
        with self._lock:
            self._stats = fold(self._stats)
            return self._stats


class GameSessions:
    """Runs moves for all rooms against a store."""

    def __init__(self, engine: Optional[GameEngine] = None, store=None,
                 ai_rng: Optional[DiceRoller] = None, logs_dir: Optional[str] = LOGS_DIR):
        self.engine = engine or GameEngine()
        self.store = store if store is not None else GameStore()
        self.ai_rng = ai_rng or self.engine.rng
        self.logs_dir = logs_dir
        self._loggers = {}

    # ── rooms ────────────────────────────────────────────────────────────────

    def create_room(self, host: PlayerRef, practice: bool = False) -> Game:
        if practice:
            game = self.engine.create_practice_game(host)
        else:
            game = self.engine.create_game(host)
        self.store.create(game)
        self._log_events(None, game)
        logger.info("Created %s room %s for %s", "practice" if practice else "multiplayer",
                    game.id, host.id)
        return game

    def join(self, game_id: str, ref: PlayerRef) -> Game:
        return self._transition(game_id, lambda g: self.engine.join_game(g, ref))

    def add_ai(self, game_id: str, name: Optional[str] = None) -> Game:
        return self._transition(game_id, lambda g: self.engine.add_ai_player(g, name))

    # ── moves ────────────────────────────────────────────────────────────────

    def start(self, game_id: str, player_id: str) -> Game:
        return self.apply(game_id, StartGame(player_id=player_id))

    def bid(self, game_id: str, player_id: str, count: int, face: int) -> Game:
        return self.apply(game_id, ProposeBid(player_id=player_id, count=count, face=face))

    def call(self, game_id: str, player_id: str, kind: str) -> Game:
        return self.apply(game_id, Challenge(player_id=player_id, kind=kind))

    def next_round(self, game_id: str, player_id: str) -> Game:
        """Start the next round once the result has been on screen for ``ROUND_END_DELAY``."""
        game = self.store.get(game_id)
        if game.status == GameStatus.ROUND_END:
            self._check_elapsed(game, ROUND_END_DELAY, "The round result is still on screen")
        return self.apply(game_id, StartNextRound(player_id=player_id))

    def apply(self, game_id: str, intent) -> Game:
        game = self._transition(game_id, lambda g: self.engine.apply(g, intent))
        return self._play_ai_turns(game)

    def handle_timeout(self, game_id: str) -> Game:
        """Turn holder ran out of time: dudo if there is a bid, otherwise forfeit.

        Anyone may report the timeout, but only once ``TURN_TIMEOUT`` seconds
        have passed since the last move.
        """
        game = self.store.get(game_id)
        if game.status != GameStatus.BIDDING:
            return game
        self._check_elapsed(game, TURN_TIMEOUT, "Turn has not timed out")
        player = game.current_player
        logger.warning("Player %s timed out in game %s", player.id, game_id)
        if game.current_bid is not None:
            intent = Challenge(player_id=player.id, kind=CallType.DUDO)
        else:
            intent = Forfeit(player_id=player.id)
        return self.apply(game_id, intent)

    # ── queries ──────────────────────────────────────────────────────────────

    def state(self, game_id: str, viewer_id: Optional[str] = None) -> dict:
        game = self.store.get(game_id)
        state = self.engine.get_game_state(game, viewer_id=viewer_id)
        if game.status == GameStatus.ROUND_END:
            state["next_round_delay"] = ROUND_END_DELAY
        return state

    def leaderboard(self) -> dict:
        return leaderboard(self.store.load_stats())

    # ── helpers ──────────────────────────────────────────────────────────────

    def _transition(self, game_id: str, step: Callable[[Game], Game]) -> Game:
        """Apply ``step`` to the stored game and write it back under the version check."""
        previous = self.store.get(game_id)
        game = step(previous)
        if game is previous:
            return game
        self.store.save(game, expected_version=previous.last_updated)
        self._log_events(previous, game)
        new_result = (game.last_result is not None and previous.status == GameStatus.BIDDING
                      and game.status != GameStatus.BIDDING)
        game_over = (game.status == GameStatus.GAME_OVER
                     and previous.status != GameStatus.GAME_OVER)
        if new_result or game_over:
            self.store.update_stats(
                lambda stats: record_result(stats, game, new_result=new_result, game_over=game_over))
        return game

    def _play_ai_turns(self, game: Game) -> Game:
        """Let AI seats move until a human is on turn or the round is over."""
        while game.status == GameStatus.BIDDING and game.current_player.is_ai:
            player = game.current_player
            ai = AIPlayer(player.id, rng=self.ai_rng)
            try:
                game = self._transition(game.id, lambda g: ai.play(self.engine, g))
            except GameError as e:
                if game.current_bid is None:
                    raise
                logger.error("AI %s made an illegal move in game %s: %s", player.id, game.id, e)
                game = self._transition(
                    game.id, lambda g: self.engine.call(g, player.id, CallType.DUDO))
        return game

    def _check_elapsed(self, game: Game, seconds: float, message: str):
        """Raise unless ``seconds`` have passed since ``game`` was last written.

        ``last_updated`` and the engine clock are both in milliseconds.
        """
        waited = (self.engine.clock() - game.last_updated) / 1000.0
        if waited < seconds:
            raise TimerNotExpired(f"{message} ({waited:.1f}s of {seconds:.1f}s)")

    def _log_events(self, previous: Optional[Game], game: Game):
        if self.logs_dir is None:
            return
        game_logger = self._loggers.get(game.id)
        if game_logger is None:
            game_logger = self._loggers[game.id] = GameLogger(game.id, self.logs_dir)
        game_logger.log_events(previous, game)
        if game.status == GameStatus.GAME_OVER:
            # No more events once the game is over
            del self._loggers[game.id]
