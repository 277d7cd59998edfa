"""
Strategy statistics store for the Qutrit Tic-Tac-Toe opponent.

Holds completed game records, win/loss/draw totals, and the per-batch
training history. The store is an explicit object owned by whoever hosts
it (the server or a training script) and passed to the trainer; there is
no module-level state.
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from typing import Optional
import time

from ..core.cells import DRAW
from ..core.moves import Move, ClassicalMove, SplitMove

# Minimum occurrences before a pattern is reported
MIN_OPENING_COUNT = 2
MIN_SPLIT_RATIO_COUNT = 3
MIN_COUNTER_COUNT = 3


@dataclass
class GameRecord:
    """A completed game as seen from the AI's side."""
    moves: tuple[Move, ...]
    winner: Optional[str]  # 'X', 'O', 'draw' or None if never collapsed
    ai_player: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class TrainingStats:
    """Summary of one training batch."""
    epoch: int
    win_rate: float
    avg_reward: float
    exploration_rate: float
    games_this_epoch: int

    def to_dict(self) -> dict:
        return {
            "epoch": self.epoch,
            "winRate": self.win_rate,
            "avgReward": self.avg_reward,
            "explorationRate": self.exploration_rate,
            "gamesThisEpoch": self.games_this_epoch,
        }


@dataclass
class AIStats:
    """Totals across every recorded game."""
    games_played: int
    wins: int
    losses: int
    draws: int
    training_history: list[TrainingStats] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "gamesPlayed": self.games_played,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "trainingHistory": [t.to_dict() for t in self.training_history],
        }


@dataclass
class PatternInfo:
    """A recurring situation and how the AI fared in it."""
    pattern: str
    frequency: int
    win_rate: float
    description: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["winRate"] = data.pop("win_rate")
        return data


def _squares_key(move: Move, sep: str) -> str:
    return sep.join(str(sq) for sq in sorted(move.squares))


class StrategyStats:
    """In-memory statistics store. Not thread-safe; callers serialize access."""

    def __init__(self):
        self.records: list[GameRecord] = []
        self.wins = 0
        self.losses = 0
        self.draws = 0
        self.training_history: list[TrainingStats] = []

    def record_game(self, moves, winner: Optional[str], ai_player: str) -> GameRecord:
        """Add a completed game. A missing winner counts as a draw."""
        record = GameRecord(moves=tuple(moves), winner=winner, ai_player=ai_player)
        self.records.append(record)

        if winner == ai_player:
            self.wins += 1
        elif winner == DRAW or winner is None:
            self.draws += 1
        else:
            self.losses += 1
        return record

    def add_training_stats(self, stats: TrainingStats) -> None:
        self.training_history.append(stats)

    def merge(self, other: StrategyStats) -> list[TrainingStats]:
        """
        Append another store's records and training history.

        Epochs from `other` are renumbered to follow this store's history.
        Returns the renumbered entries.
        """
        self.records.extend(other.records)
        self.wins += other.wins
        self.losses += other.losses
        self.draws += other.draws

        merged = []
        for entry in other.training_history:
            entry = replace(entry, epoch=self.next_epoch)
            self.training_history.append(entry)
            merged.append(entry)
        return merged

    @property
    def next_epoch(self) -> int:
        return len(self.training_history) + 1

    def stats(self) -> AIStats:
        return AIStats(
            games_played=len(self.records),
            wins=self.wins,
            losses=self.losses,
            draws=self.draws,
            training_history=list(self.training_history),
        )

    def reset(self) -> None:
        self.records.clear()
        self.wins = 0
        self.losses = 0
        self.draws = 0
        self.training_history.clear()

    def patterns(self) -> list[PatternInfo]:
        """
        Recurring patterns across recorded games, most frequent first.

        - Opponent openings (first opponent move), reported from 2 games
        - AI split ratios (e.g. '70/30'), reported from 3 uses
        - Counter-strategies (opponent move then AI reply), from 3 uses
        """
        if not self.records:
            return []

        openings: dict[str, list[int]] = {}
        ratios: dict[str, list[int]] = {}
        counters: dict[str, list[int]] = {}

        for record in self.records:
            ai_won = int(record.winner == record.ai_player)

            opponent_moves = [m for m in record.moves if m.player != record.ai_player]
            if opponent_moves:
                first = opponent_moves[0]
                if isinstance(first, ClassicalMove):
                    key = f"classical-{first.square}"
                else:
                    key = f"split-{_squares_key(first, '-')}"
                entry = openings.setdefault(key, [0, 0])
                entry[0] += 1
                entry[1] += ai_won

            for move in record.moves:
                if move.player == record.ai_player and isinstance(move, SplitMove):
                    probs = sorted((a.prob for a in move.allocations), reverse=True)
                    key = '/'.join(f"{p * 100:.0f}" for p in probs)
                    entry = ratios.setdefault(key, [0, 0])
                    entry[0] += 1
                    entry[1] += ai_won

            for opp_move, reply in zip(record.moves, record.moves[1:]):
                if opp_move.player == record.ai_player or reply.player != record.ai_player:
                    continue
                opp_key = (f"opp_c{opp_move.square}" if isinstance(opp_move, ClassicalMove)
                           else f"opp_s{_squares_key(opp_move, '_')}")
                ai_key = (f"ai_c{reply.square}" if isinstance(reply, ClassicalMove)
                          else f"ai_s{_squares_key(reply, '_')}")
                entry = counters.setdefault(f"{opp_key}_then_{ai_key}", [0, 0])
                entry[0] += 1
                entry[1] += ai_won

        patterns = []
        for key, (count, won) in openings.items():
            if count >= MIN_OPENING_COUNT:
                rate = won / count
                patterns.append(PatternInfo(
                    pattern=f"opponent_opening_{key}",
                    frequency=count,
                    win_rate=rate,
                    description=f"Opponent opens with {key}. AI win rate: {rate * 100:.1f}%",
                ))
        for key, (count, won) in ratios.items():
            if count >= MIN_SPLIT_RATIO_COUNT:
                rate = won / count
                patterns.append(PatternInfo(
                    pattern=f"ai_split_ratio_{key}",
                    frequency=count,
                    win_rate=rate,
                    description=f"AI uses {key} split. Win rate: {rate * 100:.1f}%",
                ))
        for key, (count, won) in counters.items():
            if count >= MIN_COUNTER_COUNT:
                rate = won / count
                patterns.append(PatternInfo(
                    pattern=f"counter_{key}",
                    frequency=count,
                    win_rate=rate,
                    description=f"Counter-strategy: {key}. Win rate: {rate * 100:.1f}%",
                ))

        patterns.sort(key=lambda p: p.frequency, reverse=True)
        return patterns
