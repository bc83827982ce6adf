"""Game logger: one line per game event in logs/game_<id>.log

Format
------
  <version> <status> <event>   version is the token of the snapshot that produced the event
"""
import os

from perudo.server.config import LOGS_DIR
from perudo.server.models import Game


class GameLogger:
    def __init__(self, game_id: str, logs_dir: str = LOGS_DIR):
        os.makedirs(logs_dir, exist_ok=True)
        self._path = os.path.join(logs_dir, f'game_{game_id}.log')

    @property
    def path(self) -> str:
        return self._path

    def log_events(self, previous: Game, current: Game):
        """Append the log lines ``current`` added on top of ``previous``."""
        if previous is not None and current.logs[:len(previous.logs)] == previous.logs:
            new_lines = current.logs[len(previous.logs):]
        else:
            new_lines = current.logs   # log was reset (new game)
        if not new_lines:
            return
        with open(self._path, 'a', encoding='utf-8') as f:
            for line in new_lines:
                f.write(f'{current.last_updated} {current.status.value} {line}\n')
