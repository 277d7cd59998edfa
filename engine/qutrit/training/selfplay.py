"""
Self-play game generation for the Qutrit Tic-Tac-Toe opponent.

Two batch modes:
- run_training_batch: heuristic AI against a random player, AI side
  alternating X/O between games
- self_play: heuristic AI against itself, scored from X's perspective

Every finished game is collapsed, recorded in the injected StrategyStats,
and summarized as a TrainingStats entry.
"""

from __future__ import annotations
from typing import Optional
import logging

import numpy as np

from ..core.cells import X, O, DRAW
from ..core.collapse import collapse
from ..core.errors import RuleViolation
from ..core.moves import apply_move
from ..core.state import GameSession, PLAYING, READY_TO_COLLAPSE, PVA
from ..ai.player import AIConfig, HeuristicStrategy, RandomStrategy, Strategy
from .stats import StrategyStats, TrainingStats

logger = logging.getLogger(__name__)

# Rewards per result from the AI's perspective
WIN_REWARD = 1.0
DRAW_REWARD = 0.1
LOSS_REWARD = -0.5

MAX_GAMES_PER_BATCH = 1000


def reward_for(winner: Optional[str], player: str) -> float:
    if winner == player:
        return WIN_REWARD
    if winner == DRAW or winner is None:
        return DRAW_REWARD
    return LOSS_REWARD


class SelfPlay:
    """
    Plays batches of games and records them.

    The random generator is shared by both strategies and by collapse, so
    a fixed seed reproduces a whole batch.
    """

    def __init__(
        self,
        config: Optional[AIConfig] = None,
        stats: Optional[StrategyStats] = None,
        side: int = 3,
        seed: Optional[int] = None
    ):
        self.config = config if config is not None else AIConfig()
        self.stats = stats if stats is not None else StrategyStats()
        self.side = side
        self.rng = np.random.default_rng(seed)

    def play_game(self, x_strategy: Strategy, o_strategy: Strategy, ai_player: str = X) -> GameSession:
        """
        Play one game to completion and collapse it.

        If a strategy proposes an illegal move, one random move is tried
        instead; if that fails too the game stops uncollapsed.
        """
        session = GameSession.new_game(side=self.side, game_mode=PVA, ai_player=ai_player)
        fallback = RandomStrategy(self.rng)

        while session.phase == PLAYING:
            strategy = x_strategy if session.current_player == X else o_strategy
            move = strategy.choose_move(session)
            if move is None:
                break

            try:
                session = apply_move(session, move)
            except RuleViolation as e:
                logger.debug("Strategy move rejected (%s); trying a random move", e)
                retry = fallback.choose_move(session)
                if retry is None:
                    break
                try:
                    session = apply_move(session, retry)
                except RuleViolation as e:
                    logger.warning("Game %s stuck after %d moves: %s", session.id, session.moves_played, e)
                    break

        if session.phase == READY_TO_COLLAPSE:
            session = collapse(session, self.rng)
        return session

    def _finish_batch(self, num_games: int, wins: int, total_reward: float) -> TrainingStats:
        training_stats = TrainingStats(
            epoch=self.stats.next_epoch,
            win_rate=wins / num_games if num_games > 0 else 0.0,
            avg_reward=total_reward / num_games if num_games > 0 else 0.0,
            exploration_rate=self.config.exploration_rate,
            games_this_epoch=num_games,
        )
        self.stats.add_training_stats(training_stats)
        return training_stats

    def run_training_batch(self, num_games: int) -> TrainingStats:
        """AI against a random player, alternating the AI's side."""
        ai = HeuristicStrategy(self.config, self.rng)
        opponent = RandomStrategy(self.rng)

        wins = losses = draws = 0
        total_reward = 0.0
        lengths = []

        for i in range(num_games):
            ai_player = X if i % 2 == 0 else O
            if ai_player == X:
                session = self.play_game(ai, opponent, ai_player)
            else:
                session = self.play_game(opponent, ai, ai_player)

            self.stats.record_game(session.moves, session.winner, ai_player)
            lengths.append(session.moves_played)

            if session.winner == ai_player:
                wins += 1
            elif session.winner == DRAW or session.winner is None:
                draws += 1
            else:
                losses += 1
            total_reward += reward_for(session.winner, ai_player)

        result = self._finish_batch(num_games, wins, total_reward)
        logger.info(
            "Epoch %d: %d games vs random, W/L/D %d/%d/%d, avg reward %.3f, avg length %.1f",
            result.epoch, num_games, wins, losses, draws, result.avg_reward,
            float(np.mean(lengths)) if lengths else 0.0
        )
        return result

    def self_play(self, num_games: int = 10) -> TrainingStats:
        """AI against itself, recorded from X's perspective."""
        ai = HeuristicStrategy(self.config, self.rng)

        x_wins = o_wins = draws = 0
        total_reward = 0.0

        for _ in range(num_games):
            session = self.play_game(ai, ai, X)
            self.stats.record_game(session.moves, session.winner, X)

            if session.winner == X:
                x_wins += 1
            elif session.winner == O:
                o_wins += 1
            else:
                draws += 1
            total_reward += reward_for(session.winner, X)

        result = self._finish_batch(num_games, x_wins, total_reward)
        logger.info(
            "Epoch %d: %d self-play games, X/O/D %d/%d/%d, avg reward %.3f",
            result.epoch, num_games, x_wins, o_wins, draws, result.avg_reward
        )
        return result
