"""Computer opponents for Perudo.

Decisions come from a binomial model of the dice hidden under the other
players' cups: every unknown die matches a face with probability 1/3 (the
face itself or a paco) or 1/6 when pacos are not wild.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from perudo.server.config import (
    AI_BLUFF_MARGIN, AI_CALZA_DRAW, AI_DUDO_THRESHOLD, AI_SELF_DUDO_DRAW, WILD_FACE,
)
from perudo.server.dice import DiceRoller
from perudo.server.models import ALL_FACES, Bid, CallType, Game, Player
from perudo.server.rules import matches

AI_NAMES = [
    'Calculon', 'DeepBlueDice', 'ProbabilityPete', 'BluffMaster-9000',
    'TheQuant', 'SiliconLiar', 'RiskEngine', 'BayesianBot', 'DiceDaemon',
]


def random_ai_name(rng: DiceRoller) -> str:
    return rng.choice(AI_NAMES)


# === Probability ===

def match_probability(face: int, palifico: bool) -> float:
    """Chance that one unseen die counts toward ``face``."""
    if palifico or face == WILD_FACE:
        return 1.0 / 6.0
    return 1.0 / 3.0


def prob_at_least(n: int, k: int, p: float) -> float:
    """P(X >= k) for X ~ Binomial(n, p).

    P = sum_{i=k}^{n} C(n, i) * p^i * (1-p)^(n-i)
    """
    if k <= 0:
        return 1.0
    if k > n:
        return 0.0

    q = 1.0 - p
    total_prob = 0.0
    for i in range(k, n + 1):
        total_prob += math.comb(n, i) * (p ** i) * (q ** (n - i))
    return min(total_prob, 1.0)


def bid_probability(hand: Sequence[int], unknown_dice: int, bid: Bid, palifico: bool) -> float:
    """Probability that ``bid`` holds, given our own hand."""
    matching = sum(1 for d in hand if matches(d, bid.face, palifico))
    needed = max(0, bid.count - matching)
    if needed == 0:
        return 1.0
    return prob_at_least(unknown_dice, needed, match_probability(bid.face, palifico))


def effective_counts(hand: Sequence[int], palifico: bool) -> dict[int, int]:
    """Own dice counting toward each face, pacos included where they are wild."""
    return {face: sum(1 for d in hand if matches(d, face, palifico)) for face in ALL_FACES}


# === Decisions ===

@dataclass(frozen=True)
class AIAction:
    kind: str                       # "bid", "dudo" or "calza"
    count: Optional[int] = None
    face: Optional[int] = None

    @property
    def is_bid(self) -> bool:
        return self.kind == "bid"

    def to_dict(self) -> dict:
        return {"kind": self.kind, "count": self.count, "face": self.face}


DUDO = AIAction(kind=CallType.DUDO.value)
CALZA = AIAction(kind=CallType.CALZA.value)


def decide_action(player: Player, players: Iterable[Player], current_bid: Optional[Bid],
                  palifico: bool, rng: DiceRoller) -> AIAction:
    """Choose between dudo, calza and a raise for ``player``.

    Deterministic for a given ``rng`` state.
    """
    players = list(players)
    hand = player.dice
    total_dice = sum(p.dice_count for p in players)
    unknown_dice = total_dice - len(hand)

    # 1. Challenge or stake the current bid
    if current_bid is not None:
        prob = bid_probability(hand, unknown_dice, current_bid, palifico)
        if prob < AI_DUDO_THRESHOLD:
            return DUDO
        matching = sum(1 for d in hand if matches(d, current_bid.face, palifico))
        if (not palifico and prob == 1.0 and current_bid.count == matching
                and rng.random() > AI_CALZA_DRAW):
            return CALZA

    # 2. Pick the face our hand supports best
    counts = effective_counts(hand, palifico)
    best_face = 2
    best_count = 0
    for face in ALL_FACES:
        if counts[face] > best_count:
            best_count = counts[face]
            best_face = face

    if current_bid is None:
        return _opening_bid(player, players, palifico, best_face, total_dice, rng)

    if palifico:
        # Face is locked, only the count can go up
        return AIAction(kind="bid", count=current_bid.count + 1, face=current_bid.face)

    expected_total = best_count + unknown_dice * match_probability(best_face, False)

    if current_bid.face == WILD_FACE:
        next_face = 2 if best_face == WILD_FACE else best_face
        next_count = current_bid.count * 2 + 1
    elif best_face == WILD_FACE:
        next_face = WILD_FACE
        next_count = math.ceil(current_bid.count / 2)
    elif best_face > current_bid.face:
        next_face = best_face
        next_count = current_bid.count
    else:
        next_face = best_face
        next_count = current_bid.count + 1

    if next_count > expected_total + AI_BLUFF_MARGIN and rng.random() > AI_SELF_DUDO_DRAW:
        return DUDO

    return AIAction(kind="bid", count=next_count, face=next_face)


def _opening_bid(player: Player, players: list[Player], palifico: bool, best_face: int,
                 total_dice: int, rng: DiceRoller) -> AIAction:
    if palifico:
        active = [p for p in players if not p.is_eliminated]
        own_face = player.dice[0] if player.dice else 2
        if len(active) == 2 and all(p.dice_count == 1 for p in active):
            # 1v1 with a die each: any face may open
            face = rng.randrange(5) + 2 if rng.random() > 0.5 else own_face
            return AIAction(kind="bid", count=1, face=face)
        return AIAction(kind="bid", count=1, face=own_face)

    face = 2 if best_face == WILD_FACE else best_face
    return AIAction(kind="bid", count=max(1, total_dice // 5), face=face)


class AIPlayer:
    """Plays the seat of a computer-controlled player."""

    def __init__(self, player_id: str, rng: Optional[DiceRoller] = None):
        self.player_id = player_id
        self.rng = rng or DiceRoller()

    def decide(self, game: Game) -> AIAction:
        player = game.get_player(self.player_id)
        if player is None:
            raise ValueError(f"Player {self.player_id} is not seated in game {game.id}")
        return decide_action(player, game.players, game.current_bid, game.is_palifico, self.rng)

    def play(self, engine, game: Game) -> Game:
        """Decide and apply the move through the engine's normal entry points."""
        action = self.decide(game)
        if action.is_bid:
            return engine.place_bid(game, self.player_id, action.count, action.face)
        return engine.call(game, self.player_id, action.kind)
