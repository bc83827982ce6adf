"""Game models for Perudo.

All models are frozen dataclasses: the engine never edits a game in place,
it builds a new snapshot with ``dataclasses.replace``.
"""
from enum import Enum
from dataclasses import dataclass, field, replace
from typing import Optional

from perudo.server.config import DICE_FACES, WILD_FACE


# === Enums ===

class GameStatus(Enum):
    WAITING = "waiting"
    BIDDING = "bidding"
    ROUND_END = "round_end"
    GAME_OVER = "game_over"


class CallType(Enum):
    DUDO = "dudo"      # "I don't believe it"
    CALZA = "calza"    # "Exactly right"


# === Mappings ===

DICE_FACE_SYMBOLS = {
    1: "⚀",
    2: "⚁",
    3: "⚂",
    4: "⚃",
    5: "⚄",
    6: "⚅",
}

ALL_FACES = tuple(range(1, DICE_FACES + 1))


def is_valid_face(face) -> bool:
    return isinstance(face, int) and not isinstance(face, bool) and 1 <= face <= DICE_FACES


# === Models ===

@dataclass(frozen=True)
class PlayerRef:
    """Normalized identity of whoever acts: a signed-in user, a guest or an AI."""
    id: str
    display_name: str


@dataclass(frozen=True)
class Bid:
    player_id: str
    count: int
    face: int

    @property
    def is_wild(self) -> bool:
        return self.face == WILD_FACE

    @property
    def label(self) -> str:
        return f"{self.count} x {self.face}s"

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "count": self.count,
            "face": self.face,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Bid":
        return cls(player_id=data["player_id"], count=data["count"], face=data["face"])


@dataclass(frozen=True)
class RoundResult:
    """Outcome event of a Dudo or Calza, kept on the game and fed to the stats."""
    kind: CallType
    caller_id: str
    bidder_id: str
    success: bool
    actual_count: int
    bid_face: int
    bid_count: int

    @property
    def bid_label(self) -> str:
        return f"{self.bid_count} x {self.bid_face}s"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "caller_id": self.caller_id,
            "bidder_id": self.bidder_id,
            "success": self.success,
            "actual_count": self.actual_count,
            "bid_face": self.bid_face,
            "bid_count": self.bid_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoundResult":
        return cls(
            kind=CallType(data["kind"]),
            caller_id=data["caller_id"],
            bidder_id=data["bidder_id"],
            success=data["success"],
            actual_count=data["actual_count"],
            bid_face=data["bid_face"],
            bid_count=data["bid_count"],
        )


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    dice: tuple[int, ...] = ()
    is_host: bool = False
    is_eliminated: bool = False
    is_ai: bool = False
    last_action: Optional[str] = None

    @property
    def is_human(self) -> bool:
        return not self.is_ai

    @property
    def dice_count(self) -> int:
        return len(self.dice)

    @property
    def is_active(self) -> bool:
        return not self.is_eliminated

    def count_face(self, face: int) -> int:
        return sum(1 for d in self.dice if d == face)

    def with_dice(self, dice) -> "Player":
        return replace(self, dice=tuple(dice))

    def to_dict(self, hide_dice: bool = False) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "dice": [] if hide_dice else list(self.dice),
            "dice_count": self.dice_count,
            "is_host": self.is_host,
            "is_eliminated": self.is_eliminated,
            "is_ai": self.is_ai,
            "last_action": self.last_action,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Player":
        return cls(
            id=data["id"],
            name=data["name"],
            dice=tuple(data.get("dice", ())),
            is_host=data.get("is_host", False),
            is_eliminated=data.get("is_eliminated", False),
            is_ai=data.get("is_ai", False),
            last_action=data.get("last_action"),
        )


@dataclass(frozen=True)
class Game:
    id: str
    players: tuple[Player, ...] = ()
    status: GameStatus = GameStatus.WAITING
    current_turn_index: int = 0
    current_bid: Optional[Bid] = None
    last_result: Optional[RoundResult] = None
    winner_id: Optional[str] = None
    logs: tuple[str, ...] = field(default_factory=tuple)
    last_updated: int = 0
    is_palifico: bool = False
    round_starter_id: Optional[str] = None
    is_single_player: bool = False
    round_number: int = 0

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def player_index(self, player_id: str) -> int:
        for i, p in enumerate(self.players):
            if p.id == player_id:
                return i
        return -1

    @property
    def current_player(self) -> Optional[Player]:
        if 0 <= self.current_turn_index < len(self.players):
            return self.players[self.current_turn_index]
        return None

    @property
    def active_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_eliminated]

    @property
    def total_dice(self) -> int:
        return sum(p.dice_count for p in self.players)

    @property
    def is_1v1_single_die(self) -> bool:
        """Two players left holding one die each: Palifico openers may pick any face."""
        active = self.active_players
        return len(active) == 2 and all(p.dice_count == 1 for p in active)

    def to_dict(self, viewer_id: Optional[str] = None) -> dict:
        """Convert to dict, optionally hiding other players' dice while bidding."""
        hide = viewer_id is not None and self.status == GameStatus.BIDDING
        return {
            "id": self.id,
            "players": [p.to_dict(hide_dice=(hide and p.id != viewer_id)) for p in self.players],
            "status": self.status.value,
            "current_turn_index": self.current_turn_index,
            "current_bid": self.current_bid.to_dict() if self.current_bid else None,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "winner_id": self.winner_id,
            "logs": list(self.logs),
            "last_updated": self.last_updated,
            "is_palifico": self.is_palifico,
            "round_starter_id": self.round_starter_id,
            "is_single_player": self.is_single_player,
            "round_number": self.round_number,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Game":
        bid = data.get("current_bid")
        result = data.get("last_result")
        return cls(
            id=data["id"],
            players=tuple(Player.from_dict(p) for p in data.get("players", ())),
            status=GameStatus(data.get("status", GameStatus.WAITING.value)),
            current_turn_index=data.get("current_turn_index", 0),
            current_bid=Bid.from_dict(bid) if bid else None,
            last_result=RoundResult.from_dict(result) if result else None,
            winner_id=data.get("winner_id"),
            logs=tuple(data.get("logs", ())),
            last_updated=data.get("last_updated", 0),
            is_palifico=data.get("is_palifico", False),
            round_starter_id=data.get("round_starter_id"),
            is_single_player=data.get("is_single_player", False),
            round_number=data.get("round_number", 0),
        )
