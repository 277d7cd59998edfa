#!/usr/bin/env python3
"""
Local training script for the Qutrit Tic-Tac-Toe opponent.

Runs batches of games and records them in the strategy statistics.
With --db the games and epoch summaries are written to the same SQLite
database the server restores from.

Modes:
  - Default: AI against a random player, alternating sides
  - --self-play: AI against itself, scored from X's perspective
"""

import argparse
import json
import logging
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.ai.player import AIConfig
from qutrit.training.selfplay import SelfPlay, MAX_GAMES_PER_BATCH
from qutrit.training.stats import StrategyStats
from server import persistence

logger = logging.getLogger("train_local")


def main():
    parser = argparse.ArgumentParser(description='Local training for Qutrit Tic-Tac-Toe')
    parser.add_argument('--iterations', type=int, default=10, help='Training batches')
    parser.add_argument('--games-per-iter', type=int, default=100, help='Games per batch')
    parser.add_argument('--size', type=int, choices=[2, 3, 4], default=3, help='Board side length')
    parser.add_argument('--self-play', action='store_true', help='AI against itself')
    parser.add_argument('--exploration', type=float, default=0.1, help='Exploration rate')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--db', type=Path, help='SQLite database to record games in')
    parser.add_argument('--patterns', action='store_true', help='Print learned patterns at the end')

    args = parser.parse_args()

    if not 1 <= args.games_per_iter <= MAX_GAMES_PER_BATCH:
        parser.error(f"--games-per-iter must be between 1 and {MAX_GAMES_PER_BATCH}")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    stats = StrategyStats()
    if args.db:
        persistence.init_db(args.db)
        for record in persistence.load_game_records(args.db):
            stats.record_game(record.moves, record.winner, record.ai_player)
        for entry in persistence.load_training_history(args.db):
            stats.add_training_stats(entry)
        logger.info("Resuming with %d recorded games", len(stats.records))

    config = AIConfig()
    config.update(exploration_rate=args.exploration)
    trainer = SelfPlay(config=config, stats=stats, side=args.size, seed=args.seed)

    for _ in range(args.iterations):
        before = len(stats.records)
        if args.self_play:
            result = trainer.self_play(args.games_per_iter)
        else:
            result = trainer.run_training_batch(args.games_per_iter)

        if args.db:
            for record in stats.records[before:]:
                persistence.save_game_record(record, args.db)
            persistence.save_training_stats(result, args.db)

    print(json.dumps(stats.stats().to_dict(), indent=2))
    if args.patterns:
        for pattern in stats.patterns():
            print(f"{pattern.frequency:5d}  {pattern.description}")


if __name__ == '__main__':
    main()
