"""Bid legality and round resolution rules for Perudo.

Pure functions only: nothing here rolls dice or touches a game record.
"""
import math
from dataclasses import dataclass
from typing import Iterable, Optional

from perudo.server.config import INITIAL_DICE_COUNT, WILD_FACE
from perudo.server.models import ALL_FACES, Bid, CallType, Game, Player, RoundResult, is_valid_face


# === Bid legality ===

def min_next_bid(current_bid: Optional[Bid], target_face: int, palifico: bool) -> int:
    """Minimum count a bid on ``target_face`` needs to beat ``current_bid``.

    Wild conversions: moving onto pacos halves the count (rounded up),
    moving off pacos doubles it plus one.
    """
    if current_bid is None:
        return 1

    old_face = current_bid.face
    old_count = current_bid.count

    if palifico:
        # Any other face is rejected by the face lock, not here
        return old_count + 1 if target_face == old_face else old_count
    if target_face == old_face:
        return old_count + 1
    if target_face == WILD_FACE:
        return math.ceil(old_count / 2)
    if old_face == WILD_FACE:
        return old_count * 2 + 1
    if target_face > old_face:
        return old_count
    return old_count + 1


def bid_error(game: Game, player: Player, count: int, face: int) -> Optional[str]:
    """Return why ``player`` may not bid ``count`` x ``face`` now, or None if the bid is legal."""
    if not is_valid_face(face):
        return f"Face must be between 1 and 6, got {face}"
    if not isinstance(count, int) or isinstance(count, bool) or count < 1:
        return f"Count must be a positive integer, got {count}"

    current = game.current_bid
    if current is None:
        if not game.is_palifico:
            if face == WILD_FACE:
                return "No pacos on the opening bid"
        elif (not game.is_1v1_single_die and player.dice_count == 1
              and face != player.dice[0]):
            return f"In Palifico, open with your own die: {player.dice[0]}"
        return None

    if game.is_palifico and face != current.face:
        return f"Face is locked to {current.face}s in Palifico"

    minimum = min_next_bid(current, face, game.is_palifico)
    if count < minimum:
        return f"Minimum bid on {face}s is {minimum}"
    return None


def legal_bid_minimums(game: Game, player: Player) -> dict[int, int]:
    """Minimum legal count for every face the player may bid on right now."""
    minimums = {}
    for face in ALL_FACES:
        count = min_next_bid(game.current_bid, face, game.is_palifico)
        if bid_error(game, player, count, face) is None:
            minimums[face] = count
    return minimums


# === Round resolution ===

def matches(die: int, face: int, palifico: bool) -> bool:
    """Whether a die counts toward a bid on ``face``."""
    if die == face:
        return True
    return not palifico and face != WILD_FACE and die == WILD_FACE


def count_matching(hands: Iterable[Iterable[int]], face: int, palifico: bool) -> int:
    """Dice across all hands counting toward ``face``, pacos included outside Palifico."""
    return sum(1 for hand in hands for die in hand if matches(die, face, palifico))


@dataclass(frozen=True)
class RoundOutcome:
    result: RoundResult
    loser_id: Optional[str] = None
    gainer_id: Optional[str] = None


def resolve_call(kind: CallType, bid: Bid, players: Iterable[Player], palifico: bool,
                 caller_id: str, max_dice: int = INITIAL_DICE_COUNT) -> RoundOutcome:
    """Resolve a Dudo or Calza against ``bid``.

    The bid must exist; the engine rejects calls without one before getting here.
    """
    players = list(players)
    hands = [p.dice for p in players if not p.is_eliminated]
    actual = count_matching(hands, bid.face, palifico)

    loser_id = None
    gainer_id = None
    if kind == CallType.DUDO:
        success = actual < bid.count
        loser_id = bid.player_id if success else caller_id
    else:
        success = actual == bid.count
        if not success:
            loser_id = caller_id
        else:
            caller = next((p for p in players if p.id == caller_id), None)
            if caller is not None and caller.dice_count < max_dice:
                gainer_id = caller_id

    result = RoundResult(
        kind=kind,
        caller_id=caller_id,
        bidder_id=bid.player_id,
        success=success,
        actual_count=actual,
        bid_face=bid.face,
        bid_count=bid.count,
    )
    return RoundOutcome(result=result, loser_id=loser_id, gainer_id=gainer_id)
