"""Shared test helpers: scripted randomness and hand-built games."""
from perudo.server.dice import DiceRoller
from perudo.server.models import Game, GameStatus, Player


class ScriptedRng(DiceRoller):
    """DiceRoller whose draws come from fixed lists, falling back to a seeded stream."""

    def __init__(self, randoms=(), ranges=(), dice=(), seed=0):
        super().__init__(seed)
        self.randoms = list(randoms)
        self.ranges = list(ranges)
        self.dice = list(dice)

    def random(self):
        return self.randoms.pop(0) if self.randoms else super().random()

    def randrange(self, stop):
        return self.ranges.pop(0) if self.ranges else super().randrange(stop)

    def roll_die(self):
        return self.dice.pop(0) if self.dice else super().roll_die()


def make_game(hands, turn=0, bid=None, palifico=False, status=GameStatus.BIDDING,
              eliminated=None, ai=(), single_player=False):
    """Build a game with fixed hands; players are p1, p2, ... in turn order."""
    players = []
    for i, hand in enumerate(hands):
        pid = f"p{i + 1}"
        players.append(Player(
            id=pid,
            name=f"Player {i + 1}",
            dice=tuple(hand),
            is_host=(i == 0),
            is_eliminated=(len(hand) == 0 if eliminated is None else pid in eliminated),
            is_ai=pid in ai,
        ))
    return Game(
        id="test",
        players=tuple(players),
        status=status,
        current_turn_index=turn,
        current_bid=bid,
        is_palifico=palifico,
        round_number=1,
        last_updated=100,
        is_single_player=single_player,
    )


class FakeClock:
    """Millisecond clock for the engine that only moves when told to."""

    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)
