"""Tests for leaderboard statistics."""
from dataclasses import replace

from perudo.server.config import GUEST_NAME
from perudo.server.models import Bid, CallType
from perudo.server.stats import CalzaRecord, Stats, leaderboard, record_result

from helpers import make_game


def rename(game, player_id, name):
    return replace(game, players=tuple(
        replace(p, name=name) if p.id == player_id else p for p in game.players
    ))


class TestRecordResult:

    def test_nothing_to_record(self):
        stats = Stats()
        assert record_result(stats, make_game([[2], [3]])) is stats

    def test_elimination_and_win(self, engine):
        game = make_game([[4], [2]], bid=Bid("p1", 1, 4), turn=1)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.DUDO))
        assert stats.wins == {"Player 1": 1}
        assert stats.losses == {"Player 2": 1}

    def test_losing_a_die_is_not_a_loss(self, engine):
        game = make_game([[4, 4], [2, 3]], bid=Bid("p1", 1, 4), turn=1)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.DUDO))
        assert stats == Stats()

    def test_best_calza(self, engine):
        game = make_game([[4, 4, 1], [2, 3, 5]], bid=Bid("p1", 3, 4), turn=1)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.CALZA))
        assert stats.best_calza == CalzaRecord(name="Player 2", count=3, bid="3 x 4s")

        smaller = make_game([[4, 1], [2, 3, 5]], bid=Bid("p1", 2, 4), turn=1)
        assert record_result(stats, engine.call(smaller, "p2", CallType.CALZA)).best_calza == stats.best_calza

        bigger = make_game([[4, 4, 1], [4, 1, 5]], bid=Bid("p1", 5, 4), turn=1)
        best = record_result(stats, engine.call(bigger, "p2", CallType.CALZA)).best_calza
        assert best.count == 5
        assert best.bid == "5 x 4s"

    def test_failed_calza_elimination(self, engine):
        game = make_game([[4, 4], [3], [5, 5]], bid=Bid("p1", 3, 4), turn=1)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.CALZA))
        assert stats.losses == {"Player 2": 1}
        assert stats.best_calza is None

    def test_practice_games_ignored(self, engine):
        game = make_game([[4], [2]], bid=Bid("p1", 1, 4), turn=1, single_player=True)
        stats = Stats()
        assert record_result(stats, engine.call(game, "p2", CallType.DUDO)) is stats

    def test_guests_ignored(self, engine):
        game = rename(make_game([[4], [2]], bid=Bid("p1", 1, 4), turn=1), "p2", GUEST_NAME)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.DUDO))
        assert stats.losses == {}
        assert stats.wins == {"Player 1": 1}

    def test_counts_accumulate(self, engine):
        stats = Stats(wins={"Player 1": 2}, losses={"Player 2": 4})
        game = make_game([[4], [2]], bid=Bid("p1", 1, 4), turn=1)
        stats = record_result(stats, engine.call(game, "p2", CallType.DUDO))
        assert stats.wins == {"Player 1": 3}
        assert stats.losses == {"Player 2": 5}

    def test_win_by_forfeit(self, engine):
        over = engine.forfeit(make_game([[2, 3], [4, 5]]), "p1")
        stats = record_result(Stats(), over, new_result=False)
        assert stats.wins == {"Player 2": 1}
        assert stats.losses == {}

    def test_forfeit_does_not_recount_last_call(self, engine):
        game = make_game([[4, 4, 1], [2, 3], [5]], bid=Bid("p1", 3, 4), turn=1)
        ended = engine.call(game, "p2", CallType.CALZA)
        stats = record_result(Stats(), ended)
        assert stats.best_calza.count == 3

        over = engine.forfeit(engine.forfeit(ended, "p1"), "p3")
        stats = record_result(stats, over, new_result=False)
        assert stats.best_calza.count == 3
        assert stats.wins == {"Player 2": 1}

    def test_result_without_game_over(self, engine):
        game = make_game([[4], [2]], bid=Bid("p1", 1, 4), turn=1)
        stats = record_result(Stats(), engine.call(game, "p2", CallType.DUDO), game_over=False)
        assert stats.wins == {}
        assert stats.losses == {"Player 2": 1}


class TestLeaderboard:

    def test_empty(self):
        assert leaderboard(Stats()) == {
            "most_wins": {"name": "None", "count": 0},
            "most_losses": {"name": "None", "count": 0},
            "best_calza": {"name": "None", "count": 0, "bid": "N/A"},
        }

    def test_leaders(self):
        stats = Stats(
            wins={"Zed": 3, "Amy": 3, "Bob": 1},
            losses={"Bob": 2},
            best_calza=CalzaRecord(name="Amy", count=6, bid="6 x 5s"),
        )
        board = leaderboard(stats)
        assert board["most_wins"] == {"name": "Amy", "count": 3}
        assert board["most_losses"] == {"name": "Bob", "count": 2}
        assert board["best_calza"] == {"name": "Amy", "count": 6, "bid": "6 x 5s"}

    def test_serialization(self):
        stats = Stats(wins={"Amy": 1}, best_calza=CalzaRecord(name="Amy", count=2, bid="2 x 3s"))
        assert Stats.from_dict(stats.to_dict()) == stats
        assert Stats.from_dict({}) == Stats()
