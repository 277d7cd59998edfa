"""
Move selection for the Qutrit Tic-Tac-Toe opponent.

Strategies only see the engine's public surface: valid_move_targets to
find candidate squares, apply_move to try a move, and top_outcomes (via
the evaluator) to score the result.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Protocol
import logging

import numpy as np

from ..core.cells import EPSILON
from ..core.errors import RuleViolation
from ..core.moves import (
    Move, ClassicalMove, SplitMove, Allocation, ValidCell,
    apply_move, move_to_dict, valid_move_targets
)
from ..core.state import GameSession, PLAYING
from .evaluator import evaluate_position, heuristic_score

logger = logging.getLogger(__name__)

# Two-way split ratios tried for each pair of target cells
SPLIT_RATIOS = (0.5, 0.7, 0.3, 0.8, 0.2, 0.9, 0.1)

# Only the first few targets are paired, to keep candidate counts small
MAX_SPLIT_TARGETS = 6

# Candidates that get a full position evaluation
TOP_CANDIDATES = 12

# Weight of the position evaluation vs the heuristic in the final score
EVAL_WEIGHT = 0.7


@dataclass
class AIConfig:
    """Configuration for the opponent and the trainer."""
    learning_rate: float = 0.01
    exploration_rate: float = 0.1  # Chance of playing a random move
    discount_factor: float = 0.95
    batch_size: int = 32

    def to_dict(self) -> dict:
        return {
            "learningRate": self.learning_rate,
            "explorationRate": self.exploration_rate,
            "discountFactor": self.discount_factor,
            "batchSize": self.batch_size,
        }

    def update(self, **changes) -> None:
        """Apply range-checked updates. Raises ValueError and changes nothing on bad input."""
        for name in ("learning_rate", "exploration_rate", "discount_factor"):
            if name in changes:
                value = changes[name]
                if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
                    raise ValueError(f"{name} must be a number between 0 and 1.")
        if "batch_size" in changes:
            value = changes["batch_size"]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError("batch_size must be a positive integer.")
        unknown = set(changes) - set(asdict(self))
        if unknown:
            raise ValueError(f"Unknown config fields: {sorted(unknown)}")

        for name, value in changes.items():
            setattr(self, name, value)


class Strategy(Protocol):
    """Protocol for move-choosing players."""
    def choose_move(self, session: GameSession) -> Optional[Move]:
        """Return a move for the current player, or None if there is none."""
        ...


def generate_classical_moves(session: GameSession, targets: list[ValidCell]) -> list[Move]:
    """Classical moves on every fully empty target."""
    return [
        ClassicalMove(session.current_player, cell.index)
        for cell in targets
        if cell.p_empty >= 1.0 - EPSILON
    ]


def can_do_two_square_split(targets: list[ValidCell]) -> bool:
    """Whether some pair of targets can hold one unit between them."""
    for i in range(len(targets)):
        for j in range(i + 1, len(targets)):
            if targets[i].p_empty + targets[j].p_empty >= 1.0 - EPSILON:
                return True
    return False


def generate_multi_split(session: GameSession, targets: list[ValidCell]) -> Optional[Move]:
    """
    Fill targets in order up to capacity until one unit is placed.

    Used late in the game when no two cells can hold a full unit.
    """
    if len(targets) < 2:
        return None

    allocations = []
    remaining = 1.0
    for cell in targets:
        if remaining <= EPSILON:
            break
        amount = min(cell.p_empty, remaining)
        if amount > EPSILON:
            allocations.append(Allocation(cell.index, amount))
            remaining -= amount

    if len(allocations) < 2 or remaining > EPSILON:
        return None
    return SplitMove(session.current_player, tuple(allocations))


def generate_split_moves(session: GameSession, targets: list[ValidCell]) -> list[Move]:
    """Representative two-way splits, or a single multi-way split when no pair fits."""
    if len(targets) < 2:
        return []

    if not can_do_two_square_split(targets):
        multi = generate_multi_split(session, targets)
        return [multi] if multi else []

    player = session.current_player
    moves: list[Move] = []
    limit = min(len(targets), MAX_SPLIT_TARGETS)

    for i in range(limit):
        for j in range(i + 1, limit):
            a, b = targets[i], targets[j]
            if a.p_empty + b.p_empty < 1.0 - EPSILON:
                continue

            for ratio in SPLIT_RATIOS:
                prob_a = min(ratio, a.p_empty)
                prob_b = 1.0 - prob_a
                if prob_b <= b.p_empty + EPSILON and prob_a > EPSILON and prob_b > EPSILON:
                    moves.append(SplitMove(player, (Allocation(a.index, prob_a), Allocation(b.index, prob_b))))

                # Same ratio with the roles swapped
                prob_b = min(ratio, b.p_empty)
                prob_a = 1.0 - prob_b
                if prob_a <= a.p_empty + EPSILON and prob_a > EPSILON and prob_b > EPSILON:
                    moves.append(SplitMove(player, (Allocation(a.index, prob_a), Allocation(b.index, prob_b))))

    seen = set()
    unique = []
    for move in moves:
        key = tuple((alloc.square, round(alloc.prob, 3)) for alloc in move.allocations)
        if key not in seen:
            seen.add(key)
            unique.append(move)
    return unique


def random_move(session: GameSession, rng: np.random.Generator) -> Optional[Move]:
    """A random legal-looking move: classical, then two-way split, then fallbacks."""
    targets = valid_move_targets(session)
    if not targets:
        return None

    player = session.current_player
    classical = [c for c in targets if c.p_empty >= 1.0 - EPSILON]

    if classical and rng.random() < 0.5:
        cell = classical[int(rng.integers(len(classical)))]
        return ClassicalMove(player, cell.index)

    if len(targets) >= 2 and can_do_two_square_split(targets):
        for _ in range(10):
            i, j = rng.choice(len(targets), size=2, replace=False)
            a, b = targets[int(i)], targets[int(j)]
            if a.p_empty + b.p_empty < 1.0 - EPSILON:
                continue

            max_a = min(a.p_empty, 1.0)
            min_a = max(1.0 - b.p_empty, 0.0)
            if max_a >= min_a + EPSILON:
                prob_a = min_a + rng.random() * (max_a - min_a)
                prob_b = 1.0 - prob_a
                if prob_a > EPSILON and prob_b > EPSILON:
                    return SplitMove(player, (Allocation(a.index, prob_a), Allocation(b.index, prob_b)))

    if classical:
        cell = classical[int(rng.integers(len(classical)))]
        return ClassicalMove(player, cell.index)

    return generate_multi_split(session, targets)


class RandomStrategy:
    """Plays uniformly chosen random moves."""

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def choose_move(self, session: GameSession) -> Optional[Move]:
        if session.phase != PLAYING:
            return None
        return random_move(session, self.rng)


class HeuristicStrategy:
    """
    Heuristic opponent with epsilon-greedy exploration.

    With probability `exploration_rate` it plays a random move. Otherwise
    every candidate gets a heuristic score, the best TOP_CANDIDATES are
    played out one ply with apply_move, and the move maximizing
    0.7 * evaluate_position + 0.3 * heuristic is chosen.
    """

    def __init__(self, config: Optional[AIConfig] = None, rng: Optional[np.random.Generator] = None):
        self.config = config if config is not None else AIConfig()
        self.rng = rng if rng is not None else np.random.default_rng()

    def candidate_moves(self, session: GameSession) -> list[Move]:
        targets = valid_move_targets(session)
        return generate_classical_moves(session, targets) + generate_split_moves(session, targets)

    def choose_move(self, session: GameSession) -> Optional[Move]:
        if session.phase != PLAYING:
            return None
        if not valid_move_targets(session):
            return None

        if self.rng.random() < self.config.exploration_rate:
            return random_move(session, self.rng)

        player = session.current_player
        candidates = self.candidate_moves(session)
        if not candidates:
            return random_move(session, self.rng)

        scored = [(heuristic_score(session, m, player), m) for m in candidates]
        scored.sort(key=lambda item: item[0], reverse=True)

        best_move = None
        best_score = float('-inf')
        for h_score, move in scored[:TOP_CANDIDATES]:
            try:
                next_session = apply_move(session, move)
            except RuleViolation as e:
                logger.debug("Skipping candidate %s: %s", move_to_dict(move), e)
                continue

            total = EVAL_WEIGHT * evaluate_position(next_session, player) + (1.0 - EVAL_WEIGHT) * h_score
            if total > best_score:
                best_score = total
                best_move = move

        if best_move is None:
            return random_move(session, self.rng)
        return best_move


def get_ai_move(
    session: GameSession,
    config: Optional[AIConfig] = None,
    rng: Optional[np.random.Generator] = None
) -> Optional[Move]:
    """Convenience wrapper: choose a move with a HeuristicStrategy."""
    return HeuristicStrategy(config, rng).choose_move(session)
