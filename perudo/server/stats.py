"""Leaderboard statistics folded from round results."""
from dataclasses import dataclass, field
from typing import Optional

from perudo.server.config import GUEST_NAME
from perudo.server.models import CallType, Game, GameStatus


@dataclass(frozen=True)
class CalzaRecord:
    name: str
    count: int
    bid: str

    def to_dict(self) -> dict:
        return {"name": self.name, "count": self.count, "bid": self.bid}


@dataclass(frozen=True)
class Stats:
    wins: dict = field(default_factory=dict)      # player name -> games won
    losses: dict = field(default_factory=dict)    # player name -> games lost (eliminations)
    best_calza: Optional[CalzaRecord] = None

    def to_dict(self) -> dict:
        return {
            "wins": dict(self.wins),
            "losses": dict(self.losses),
            "best_calza": self.best_calza.to_dict() if self.best_calza else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Stats":
        calza = data.get("best_calza")
        return cls(
            wins=dict(data.get("wins", {})),
            losses=dict(data.get("losses", {})),
            best_calza=CalzaRecord(**calza) if calza else None,
        )


def _increment(counts: dict, name: str) -> dict:
    updated = dict(counts)
    updated[name] = updated.get(name, 0) + 1
    return updated


def record_result(stats: Stats, game: Game, new_result: bool = True, game_over: bool = True) -> Stats:
    """Fold the latest transition of ``game`` into ``stats``.

    ``new_result`` counts the Dudo or Calza in ``game.last_result``; pass it
    only for the snapshot the call produced. ``game_over`` counts the win;
    pass it only for the snapshot that ended the game, whether a call, a
    forfeit or a timeout ended it. Practice games and guest players are not
    recorded.
    """
    result = game.last_result if new_result else None
    ended = game_over and game.status == GameStatus.GAME_OVER
    if game.is_single_player or (result is None and not ended):
        return stats

    def name_of(player_id):
        player = game.get_player(player_id)
        if player is None or player.name == GUEST_NAME:
            return None
        return player.name

    wins, losses, best_calza = stats.wins, stats.losses, stats.best_calza

    if result is not None:
        if result.kind == CallType.CALZA:
            loser_id = None if result.success else result.caller_id
            caller_name = name_of(result.caller_id)
            if result.success and caller_name:
                if best_calza is None or result.bid_count > best_calza.count:
                    best_calza = CalzaRecord(name=caller_name, count=result.bid_count, bid=result.bid_label)
        else:
            loser_id = result.bidder_id if result.success else result.caller_id

        loser = game.get_player(loser_id) if loser_id else None
        if loser is not None and loser.is_eliminated and name_of(loser_id):
            losses = _increment(losses, loser.name)

    if ended and game.winner_id and name_of(game.winner_id):
        wins = _increment(wins, name_of(game.winner_id))

    return Stats(wins=wins, losses=losses, best_calza=best_calza)


def _leader(counts: dict) -> dict:
    if not counts:
        return {"name": "None", "count": 0}
    name, count = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    return {"name": name, "count": count}


def leaderboard(stats: Stats) -> dict:
    """Most wins, most losses and best calza records."""
    return {
        "most_wins": _leader(stats.wins),
        "most_losses": _leader(stats.losses),
        "best_calza": (stats.best_calza.to_dict() if stats.best_calza
                       else {"name": "None", "count": 0, "bid": "N/A"}),
    }
