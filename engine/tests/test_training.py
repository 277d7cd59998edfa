"""Tests for self-play training and strategy statistics."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.core.cells import X, O, DRAW
from qutrit.core.moves import ClassicalMove, SplitMove, Allocation
from qutrit.core.state import COLLAPSED
from qutrit.ai.player import AIConfig, RandomStrategy
from qutrit.training.selfplay import SelfPlay, reward_for, WIN_REWARD, DRAW_REWARD, LOSS_REWARD
from qutrit.training.stats import StrategyStats


def split(player, *pairs):
    return SplitMove(player, tuple(Allocation(sq, p) for sq, p in pairs))


class TestRewards:
    def test_rewards(self):
        assert reward_for(X, X) == WIN_REWARD
        assert reward_for(O, X) == LOSS_REWARD
        assert reward_for(DRAW, O) == DRAW_REWARD
        assert reward_for(None, O) == DRAW_REWARD


class TestStrategyStats:
    def test_record_counts(self):
        stats = StrategyStats()
        stats.record_game([ClassicalMove(X, 4)], X, X)
        stats.record_game([ClassicalMove(X, 4)], O, X)
        stats.record_game([ClassicalMove(X, 4)], DRAW, X)
        stats.record_game([ClassicalMove(X, 4)], None, O)
        summary = stats.stats()
        assert summary.games_played == 4
        assert (summary.wins, summary.losses, summary.draws) == (1, 1, 2)

    def test_to_dict(self):
        stats = StrategyStats()
        stats.record_game([], X, X)
        data = stats.stats().to_dict()
        assert data == {
            "gamesPlayed": 1, "wins": 1, "losses": 0, "draws": 0, "trainingHistory": []
        }

    def test_reset(self):
        stats = StrategyStats()
        stats.record_game([], X, X)
        stats.reset()
        assert stats.stats().games_played == 0
        assert stats.next_epoch == 1
        assert stats.patterns() == []

    def test_opening_pattern(self):
        stats = StrategyStats()
        opening = [ClassicalMove(X, 4), ClassicalMove(O, 0)]
        stats.record_game(opening, O, O)
        stats.record_game(opening, X, O)
        patterns = {p.pattern: p for p in stats.patterns()}
        assert "opponent_opening_classical-4" in patterns
        assert patterns["opponent_opening_classical-4"].frequency == 2
        assert patterns["opponent_opening_classical-4"].win_rate == 0.5

    def test_split_ratio_and_counter_patterns(self):
        stats = StrategyStats()
        moves = [ClassicalMove(X, 4), split(O, (0, 0.7), (8, 0.3))]
        for _ in range(3):
            stats.record_game(moves, O, O)
        patterns = {p.pattern: p for p in stats.patterns()}
        assert patterns["ai_split_ratio_70/30"].frequency == 3
        assert patterns["ai_split_ratio_70/30"].win_rate == 1.0
        assert "counter_opp_c4_then_ai_s0_8" in patterns

    def test_patterns_sorted_by_frequency(self):
        stats = StrategyStats()
        for _ in range(3):
            stats.record_game([ClassicalMove(X, 4), ClassicalMove(O, 0)], O, O)
        for _ in range(2):
            stats.record_game([ClassicalMove(X, 2), ClassicalMove(O, 0)], X, O)
        frequencies = [p.frequency for p in stats.patterns()]
        assert frequencies == sorted(frequencies, reverse=True)

    def test_pattern_wire_form(self):
        stats = StrategyStats()
        for _ in range(2):
            stats.record_game([ClassicalMove(X, 4)], O, O)
        data = stats.patterns()[0].to_dict()
        assert set(data) == {"pattern", "frequency", "winRate", "description"}


class TestSelfPlay:
    def test_play_game_collapses(self):
        trainer = SelfPlay(side=2, seed=0)
        rng_player = RandomStrategy(trainer.rng)
        session = trainer.play_game(rng_player, rng_player, X)
        assert session.phase == COLLAPSED
        assert session.moves_played == 4
        assert session.winner in (X, O, DRAW)

    def test_training_batch(self):
        trainer = SelfPlay(config=AIConfig(exploration_rate=0.2), side=2, seed=1)
        result = trainer.run_training_batch(6)
        assert result.epoch == 1
        assert result.games_this_epoch == 6
        assert 0.0 <= result.win_rate <= 1.0
        assert LOSS_REWARD <= result.avg_reward <= WIN_REWARD
        assert result.exploration_rate == 0.2

        stats = trainer.stats.stats()
        assert stats.games_played == 6
        assert stats.wins + stats.losses + stats.draws == 6
        assert [r.ai_player for r in trainer.stats.records] == [X, O, X, O, X, O]

    def test_self_play(self):
        trainer = SelfPlay(side=2, seed=2)
        trainer.run_training_batch(2)
        result = trainer.self_play(3)
        assert result.epoch == 2
        assert trainer.stats.stats().games_played == 5
        assert all(r.ai_player == X for r in trainer.stats.records[2:])

    def test_shared_stats(self):
        stats = StrategyStats()
        SelfPlay(stats=stats, side=2, seed=3).run_training_batch(2)
        SelfPlay(stats=stats, side=2, seed=4).run_training_batch(2)
        assert stats.stats().games_played == 4
        assert [t.epoch for t in stats.training_history] == [1, 2]

    def test_merge_renumbers_epochs(self):
        stats = StrategyStats()
        SelfPlay(stats=stats, side=2, seed=3).run_training_batch(2)

        batch = SelfPlay(stats=StrategyStats(), side=2, seed=4)
        batch.run_training_batch(3)
        merged = stats.merge(batch.stats)

        assert [t.epoch for t in merged] == [2]
        assert [t.epoch for t in stats.training_history] == [1, 2]
        assert batch.stats.training_history[0].epoch == 1
        totals = stats.stats()
        assert totals.games_played == 5
        assert totals.wins + totals.losses + totals.draws == 5

    def test_seed_reproducible(self):
        a = SelfPlay(side=3, seed=5)
        b = SelfPlay(side=3, seed=5)
        a.run_training_batch(2)
        b.run_training_batch(2)
        assert [r.moves for r in a.stats.records] == [r.moves for r in b.stats.records]
        assert [r.winner for r in a.stats.records] == [r.winner for r in b.stats.records]

    def test_epoch_wire_form(self):
        result = SelfPlay(side=2, seed=6).self_play(1)
        data = result.to_dict()
        assert set(data) == {"epoch", "winRate", "avgReward", "explorationRate", "gamesThisEpoch"}
