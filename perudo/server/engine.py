"""Game engine for Perudo - handles all game logic.

Every operation takes a ``Game`` snapshot and returns a new one. Rejected
moves raise a ``GameError`` before anything is built, so the snapshot the
caller holds is never half-updated.
"""
import time
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Optional, Union

from perudo.server.ai import random_ai_name
from perudo.server.config import INITIAL_DICE_COUNT, MAX_PLAYERS, MIN_PLAYERS, PRACTICE_AI_COUNT
from perudo.server.dice import DiceRoller
from perudo.server.models import Bid, CallType, Game, GameStatus, Player, PlayerRef
from perudo.server.rules import bid_error, legal_bid_minimums, resolve_call


class GameError(Exception):
    """Base exception for game errors."""
    code = "game_error"


class InvalidMoveError(GameError):
    """Raised when a player makes an invalid move."""
    code = "invalid_move"


class IllegalBid(InvalidMoveError):
    code = "illegal_bid"


class NoActiveBid(InvalidMoveError):
    code = "no_active_bid"


class IllegalStake(InvalidMoveError):
    code = "illegal_stake"


class NotYourTurn(InvalidMoveError):
    code = "not_your_turn"


class InvalidPhaseError(GameError):
    """Raised when an action is attempted in the wrong phase."""
    code = "invalid_phase"


class InvalidPlayerCount(GameError):
    code = "invalid_player_count"


class UnknownPlayer(GameError):
    code = "unknown_player"


# === Move intents ===

@dataclass(frozen=True)
class ProposeBid:
    player_id: str
    count: int
    face: int


@dataclass(frozen=True)
class Challenge:
    player_id: str
    kind: CallType


@dataclass(frozen=True)
class StartGame:
    player_id: str


@dataclass(frozen=True)
class StartNextRound:
    player_id: str
    starter_id: Optional[str] = None


@dataclass(frozen=True)
class Forfeit:
    player_id: str


Intent = Union[ProposeBid, Challenge, StartGame, StartNextRound, Forfeit]


def _now_ms() -> int:
    return int(time.time() * 1000)


class GameEngine:
    """Enforces the rules of Perudo over immutable game snapshots."""

    def __init__(self, rng: Optional[DiceRoller] = None, clock: Optional[Callable[[], int]] = None,
                 max_dice: int = INITIAL_DICE_COUNT):
        self.rng = rng or DiceRoller()
        self.clock = clock or _now_ms
        self.max_dice = max_dice

    # === Game Setup ===

    def create_game(self, host: PlayerRef, game_id: Optional[str] = None) -> Game:
        """Open a room with the host seated and no dice dealt."""
        game_id = game_id or uuid.uuid4().hex[:6].upper()
        player = Player(id=host.id, name=host.display_name, is_host=True)
        game = Game(id=game_id, players=(player,), logs=(f"{host.display_name} created the room {game_id}",))
        return self._touch(game)

    def create_practice_game(self, host: PlayerRef, ai_count: int = PRACTICE_AI_COUNT) -> Game:
        """Single-player room against AI opponents."""
        game_id = "PRACTICE-" + uuid.uuid4().hex[:4].upper()
        game = Game(
            id=game_id,
            players=(Player(id=host.id, name=host.display_name, is_host=True),),
            logs=("Practice Mode Started",),
            is_single_player=True,
        )
        for _ in range(ai_count):
            game = self.add_ai_player(game)
        return self._touch(game)

    def join_game(self, game: Game, ref: PlayerRef) -> Game:
        """Seat a player in a waiting room. Joining twice is a no-op."""
        if game.get_player(ref.id):
            return game
        if game.status != GameStatus.WAITING:
            raise InvalidPhaseError("Game already in progress")
        if len(game.players) >= MAX_PLAYERS:
            raise InvalidPlayerCount(f"Room is full ({MAX_PLAYERS} players)")

        player = Player(id=ref.id, name=ref.display_name)
        return self._touch(game, players=game.players + (player,),
                           logs=game.logs + (f"{ref.display_name} joined the room",))

    def add_ai_player(self, game: Game, name: Optional[str] = None) -> Game:
        """Seat a computer-controlled player."""
        if game.status != GameStatus.WAITING:
            raise InvalidPhaseError("Game already in progress")
        if len(game.players) >= MAX_PLAYERS:
            raise InvalidPlayerCount(f"Room is full ({MAX_PLAYERS} players)")

        name = name or random_ai_name(self.rng)
        player = Player(id=f"ai-{uuid.uuid4().hex[:5]}", name=name, is_ai=True)
        return self._touch(game, players=game.players + (player,),
                           logs=game.logs + (f"{name} joined the room",))

    def start_game(self, game: Game) -> Game:
        """Deal fresh hands to everyone and pick a random starting seat."""
        self._validate_status(game, GameStatus.WAITING)
        if len(game.players) < MIN_PLAYERS:
            raise InvalidPlayerCount(f"Game requires at least {MIN_PLAYERS} players")

        players = tuple(
            replace(p, dice=self.rng.roll(self.max_dice), is_eliminated=False, last_action=None)
            for p in game.players
        )
        return self._touch(
            game,
            status=GameStatus.BIDDING,
            players=players,
            current_turn_index=self.rng.randrange(len(players)),
            current_bid=None,
            last_result=None,
            winner_id=None,
            is_palifico=False,
            round_starter_id=None,
            round_number=1,
            logs=("Game Start! Paco is wild!",),
        )

    # === Bidding Phase ===

    def place_bid(self, game: Game, player_id: str, count: int, face: int) -> Game:
        """Raise the current bid and pass the turn on."""
        self._validate_status(game, GameStatus.BIDDING)
        player = self._get_player(game, player_id)
        self._validate_turn(game, player)

        error = bid_error(game, player, count, face)
        if error:
            raise IllegalBid(error)

        bid = Bid(player_id=player_id, count=count, face=face)
        players = self._with_last_action(game.players, player_id, bid.label)
        next_index = self._next_active_index(players, game.current_turn_index)

        return self._touch(
            game,
            players=players,
            current_turn_index=next_index,
            current_bid=bid,
            logs=game.logs + (f"{player.name} bid {bid.label}",),
        )

    def call(self, game: Game, player_id: str, kind: Union[CallType, str]) -> Game:
        """Challenge (dudo) or stake (calza) the current bid and resolve the round."""
        try:
            kind = CallType(kind)
        except ValueError:
            raise InvalidMoveError(f"Unknown call: {kind}")
        self._validate_status(game, GameStatus.BIDDING)
        player = self._get_player(game, player_id)
        self._validate_turn(game, player)

        if game.current_bid is None:
            raise NoActiveBid(f"Cannot call {kind.value} before anyone has bid")
        if kind == CallType.CALZA and game.is_palifico:
            raise IllegalStake("Calza is not allowed in Palifico")

        outcome = resolve_call(kind, game.current_bid, game.players, game.is_palifico,
                               player_id, max_dice=self.max_dice)
        result = outcome.result

        players = []
        for p in game.players:
            if p.id == outcome.loser_id:
                dice = p.dice[:-1]
                p = replace(p, dice=dice, is_eliminated=len(dice) == 0)
            elif p.id == outcome.gainer_id:
                p = replace(p, dice=p.dice + (self.rng.roll_die(),))
            if p.id == player_id:
                p = replace(p, last_action=kind.value.upper())
            players.append(p)
        players = tuple(players)

        logs = [f"{player.name} called {kind.value.upper()}! {'CORRECT!' if result.success else 'WRONG!'}"]
        loser = next((p for p in players if p.id == outcome.loser_id), None)
        if loser and loser.is_eliminated:
            logs.append(f"{loser.name} is out of dice!")

        active = [p for p in players if not p.is_eliminated]
        is_game_over = len(active) <= 1
        winner_id = active[0].id if is_game_over and active else None
        if winner_id:
            logs.append(f"{active[0].name} wins the game!")

        return self._touch(
            game,
            status=GameStatus.GAME_OVER if is_game_over else GameStatus.ROUND_END,
            players=players,
            last_result=result,
            winner_id=winner_id,
            is_palifico=loser is not None and loser.dice_count == 1,
            round_starter_id=outcome.loser_id or player_id,
            logs=game.logs + tuple(logs),
        )

    # === Rounds ===

    def start_new_round(self, game: Game, starter_id: Optional[str], palifico: bool) -> Game:
        """Re-roll every remaining hand and open a fresh round."""
        if game.status in (GameStatus.WAITING, GameStatus.GAME_OVER):
            raise InvalidPhaseError(f"Cannot start a round while {game.status.value}")

        players = tuple(
            replace(p, dice=() if p.is_eliminated else self.rng.roll(p.dice_count), last_action=None)
            for p in game.players
        )

        starter_index = next(
            (i for i, p in enumerate(players) if p.id == starter_id and not p.is_eliminated), -1
        )
        if starter_index == -1:
            starter_index = next(i for i, p in enumerate(players) if not p.is_eliminated)

        return self._touch(
            game,
            status=GameStatus.BIDDING,
            players=players,
            current_turn_index=starter_index,
            current_bid=None,
            last_result=None,
            is_palifico=palifico,
            round_number=game.round_number + 1,
            logs=game.logs + ("PALIFICO ROUND!" if palifico else "New Round Started.",),
        )

    def advance_phase(self, game: Game, starter_id: Optional[str] = None) -> Game:
        """Move from the end of a round to the next one.

        Called by whoever schedules the pause after a round; the engine keeps no timers.
        """
        self._validate_status(game, GameStatus.ROUND_END)
        return self.start_new_round(game, starter_id or game.round_starter_id, game.is_palifico)

    def forfeit(self, game: Game, player_id: str) -> Game:
        """Eliminate a player who left or ran out of time."""
        if game.status not in (GameStatus.BIDDING, GameStatus.ROUND_END):
            raise InvalidPhaseError(f"Cannot forfeit while {game.status.value}")
        player = self._get_player(game, player_id)
        if player.is_eliminated:
            return game

        players = tuple(
            replace(p, dice=(), is_eliminated=True, last_action="FORFEIT") if p.id == player_id else p
            for p in game.players
        )
        changes = {"players": players}
        logs = [f"{player.name} forfeited"]

        active = [p for p in players if not p.is_eliminated]
        if len(active) <= 1:
            changes.update(status=GameStatus.GAME_OVER, winner_id=active[0].id if active else None)
            if active:
                logs.append(f"{active[0].name} wins the game!")
        elif game.status == GameStatus.BIDDING:
            if game.current_bid and game.current_bid.player_id == player_id:
                changes["current_bid"] = None
            if game.current_turn_index == game.player_index(player_id):
                changes["current_turn_index"] = self._next_active_index(players, game.current_turn_index)

        return self._touch(game, logs=game.logs + tuple(logs), **changes)

    def apply(self, game: Game, intent: Intent) -> Game:
        """Dispatch a move intent to the matching transition."""
        if isinstance(intent, ProposeBid):
            return self.place_bid(game, intent.player_id, intent.count, intent.face)
        if isinstance(intent, Challenge):
            return self.call(game, intent.player_id, intent.kind)
        if isinstance(intent, StartGame):
            player = self._get_player(game, intent.player_id)
            if not player.is_host:
                raise InvalidMoveError("Only the host can start the game")
            return self.start_game(game)
        if isinstance(intent, StartNextRound):
            self._get_player(game, intent.player_id)
            return self.advance_phase(game, intent.starter_id)
        if isinstance(intent, Forfeit):
            return self.forfeit(game, intent.player_id)
        raise GameError(f"Unknown move: {intent!r}")

    # === Helper Methods ===

    def _touch(self, game: Game, **changes) -> Game:
        """Build the next snapshot with a strictly larger version token."""
        return replace(game, last_updated=max(game.last_updated + 1, self.clock()), **changes)

    def _validate_status(self, game: Game, expected: GameStatus):
        if game.status != expected:
            raise InvalidPhaseError(f"Expected {expected.value}, but game is {game.status.value}")

    def _validate_turn(self, game: Game, player: Player):
        if game.current_player is None or game.current_player.id != player.id:
            raise NotYourTurn(f"Not {player.name}'s turn")

    def _get_player(self, game: Game, player_id: str) -> Player:
        player = game.get_player(player_id)
        if not player:
            raise UnknownPlayer(f"Player {player_id} not found")
        return player

    @staticmethod
    def _next_active_index(players, from_index: int) -> int:
        """Next seat after ``from_index`` whose player is still in the game."""
        n = len(players)
        for step in range(1, n + 1):
            index = (from_index + step) % n
            if not players[index].is_eliminated:
                return index
        raise GameError("No active players left")

    @staticmethod
    def _with_last_action(players, player_id: str, action: str):
        return tuple(replace(p, last_action=action) if p.id == player_id else p for p in players)

    # === Game State Queries ===

    def legal_bids(self, game: Game, player_id: str) -> list[dict]:
        """Minimum legal count per face for the player on turn."""
        if game.status != GameStatus.BIDDING:
            return []
        player = game.get_player(player_id)
        if not player or game.current_player is None or game.current_player.id != player_id:
            return []
        return [
            {"face": face, "min_count": count}
            for face, count in legal_bid_minimums(game, player).items()
        ]

    def legal_calls(self, game: Game, player_id: str) -> list[str]:
        if game.status != GameStatus.BIDDING or game.current_bid is None:
            return []
        if game.current_player is None or game.current_player.id != player_id:
            return []
        calls = [CallType.DUDO.value]
        if not game.is_palifico:
            calls.append(CallType.CALZA.value)
        return calls

    def get_game_state(self, game: Game, viewer_id: Optional[str] = None) -> dict:
        """Get the current game state, optionally from a player's perspective."""
        state = game.to_dict(viewer_id=viewer_id)
        current = game.current_player
        state["current_player_id"] = current.id if current and game.status == GameStatus.BIDDING else None
        state["is_1v1_single_die"] = game.is_1v1_single_die
        if viewer_id:
            state["legal_bids"] = self.legal_bids(game, viewer_id)
            state["legal_calls"] = self.legal_calls(game, viewer_id)
        return state
