"""Randomness source shared by the engine and the AI players."""
import random
from typing import Optional, Sequence

from perudo.server.config import DICE_FACES


class DiceRoller:
    """Seedable wrapper around ``random.Random``.

    Dice rolls and AI calibration draws both go through one instance, so a
    game replays exactly under a fixed seed.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def roll_die(self) -> int:
        return self._rng.randint(1, DICE_FACES)

    def roll(self, num_dice: int) -> tuple[int, ...]:
        """Roll N dice."""
        return tuple(self.roll_die() for _ in range(num_dice))

    def random(self) -> float:
        """Uniform draw in [0, 1)."""
        return self._rng.random()

    def randrange(self, stop: int) -> int:
        return self._rng.randrange(stop)

    def choice(self, seq: Sequence):
        return self._rng.choice(seq)
