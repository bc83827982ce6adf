"""Benchmark AI seats against each other over repeated trials.

Each trial plays GAMES_PER_TRIAL games between NUM_SEATS AI players. Per-seat
win rates are recorded per trial; overall mean +/- stdev are reported.

Reports:
  - Per-seat win rate (seat 1 is first in turn order, not first to bid)
  - Call stats: how often each seat calls dudo/calza and how often it is right
  - Game length in rounds and the share of Palifico rounds
"""

import random
import numpy as np

from perudo.server.ai import AIPlayer
from perudo.server.dice import DiceRoller
from perudo.server.engine import GameEngine
from perudo.server.models import CallType, GameStatus, PlayerRef


NUM_SEATS = 4
GAMES_PER_TRIAL = 200
NUM_TRIALS = 10
MAX_MOVES = 10_000


def play_game(num_seats: int, seed: int):
    """Play one AI-only game. Returns (winner_seat, per-seat call stats, rounds, palifico_rounds)."""
    rng = DiceRoller(seed)
    engine = GameEngine(rng=rng, clock=lambda: 0)

    game = engine.create_game(PlayerRef(id="seat-1", display_name="Seat 1"), game_id=f"bench-{seed}")
    for seat in range(2, num_seats + 1):
        game = engine.join_game(game, PlayerRef(id=f"seat-{seat}", display_name=f"Seat {seat}"))
    game = engine.start_game(game)

    seat_of = {p.id: i for i, p in enumerate(game.players)}
    ais = {p.id: AIPlayer(p.id, rng=rng) for p in game.players}
    calls = {kind: np.zeros(num_seats, dtype=int) for kind in ("dudo", "dudo_won", "calza", "calza_won")}
    palifico_rounds = 0

    for _ in range(MAX_MOVES):
        if game.status == GameStatus.GAME_OVER:
            break
        if game.status == GameStatus.ROUND_END:
            game = engine.advance_phase(game)
            palifico_rounds += int(game.is_palifico)
            continue

        game = ais[game.current_player.id].play(engine, game)
        result = game.last_result
        if game.status != GameStatus.BIDDING and result is not None:
            seat = seat_of[result.caller_id]
            kind = "dudo" if result.kind == CallType.DUDO else "calza"
            calls[kind][seat] += 1
            calls[f"{kind}_won"][seat] += int(result.success)
    else:
        raise RuntimeError(f"Game {game.id} did not finish in {MAX_MOVES} moves")

    return seat_of[game.winner_id], calls, game.round_number, palifico_rounds


def run_trial(master_seed):
    """Play GAMES_PER_TRIAL games, return per-seat stats."""
    rng = random.Random(master_seed)

    wins = np.zeros(NUM_SEATS, dtype=int)
    totals = {kind: np.zeros(NUM_SEATS, dtype=int) for kind in ("dudo", "dudo_won", "calza", "calza_won")}
    rounds = []
    palifico = []

    for _ in range(GAMES_PER_TRIAL):
        winner, calls, n_rounds, n_palifico = play_game(NUM_SEATS, rng.randint(0, 10**9))
        wins[winner] += 1
        for kind in totals:
            totals[kind] += calls[kind]
        rounds.append(n_rounds)
        palifico.append(n_palifico)

    return {
        "win_rate": wins / GAMES_PER_TRIAL,
        "calls": totals,
        "rounds": np.array(rounds),
        "palifico": np.array(palifico),
    }


def pct(num, denom):
    """Format percentage, return 'n/a' if denom is 0."""
    return f"{100 * num / denom:.0f}%" if denom > 0 else "n/a"


def main():
    master_rng = random.Random(42)

    win_rates = []
    cum_calls = {kind: np.zeros(NUM_SEATS, dtype=int) for kind in ("dudo", "dudo_won", "calza", "calza_won")}
    all_rounds = []
    all_palifico = []

    total_games = GAMES_PER_TRIAL * NUM_TRIALS
    print(f"Benchmark: {NUM_SEATS} AI seats, {GAMES_PER_TRIAL} games/trial, "
          f"{NUM_TRIALS} trials ({total_games} total)")
    print("=" * 60)

    for t in range(NUM_TRIALS):
        trial_seed = master_rng.randint(0, 10**9)
        result = run_trial(trial_seed)
        win_rates.append(result["win_rate"])
        for kind in cum_calls:
            cum_calls[kind] += result["calls"][kind]
        all_rounds.append(result["rounds"])
        all_palifico.append(result["palifico"])

        print(f"\n--- Trial {t+1}/{NUM_TRIALS} (seed={trial_seed}) ---")
        for seat in range(NUM_SEATS):
            print(f"  Seat {seat+1}: win rate={result['win_rate'][seat]:6.1%}")

    # ================================================================
    # FINAL SUMMARY
    # ================================================================
    rates = np.array(win_rates)
    print("\n" + "=" * 60)
    print("FINAL RESULTS")
    print("=" * 60)
    print(f"\n{'Seat':>6s}  {'Win%':>7s}  {'Stdev':>7s}")
    print("-" * 26)
    for seat in range(NUM_SEATS):
        print(f"{seat+1:>6d}  {rates[:, seat].mean():7.1%}  {rates[:, seat].std(ddof=1):7.1%}")

    print(f"\n{'Seat':>6s}  {'Dudo':>6s}  {'Right':>6s}  {'Calza':>6s}  {'Right':>6s}")
    print("-" * 40)
    for seat in range(NUM_SEATS):
        d, dw = cum_calls["dudo"][seat], cum_calls["dudo_won"][seat]
        c, cw = cum_calls["calza"][seat], cum_calls["calza_won"][seat]
        print(f"{seat+1:>6d}  {d:6d}  {pct(dw, d):>6s}  {c:6d}  {pct(cw, c):>6s}")

    rounds = np.concatenate(all_rounds)
    palifico = np.concatenate(all_palifico)
    print(f"\nRounds per game: {rounds.mean():.1f} +/- {rounds.std(ddof=1):.1f}")
    print(f"Palifico rounds: {pct(palifico.sum(), rounds.sum())} of all rounds")


if __name__ == "__main__":
    main()
