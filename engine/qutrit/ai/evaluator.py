"""
Position evaluation for the Qutrit Tic-Tac-Toe opponent.

Two signals:
- evaluate_position: expected result over the most probable outcomes
- heuristic_score: cheap move-ordering score (center/corner control,
  commitment strength, contesting the opponent)
"""

from __future__ import annotations

from ..core.cells import X, DRAW, other_player
from ..core.moves import Move, ClassicalMove
from ..core.outcomes import top_outcomes
from ..core.state import GameSession

# Outcomes considered when scoring a position
EVAL_TOP_K = 32

# Opponent probability above which a cell counts as contested
CONTEST_THRESHOLD = 0.3


def center_cells(side: int) -> list[int]:
    """Center square for odd sides, the inner 2x2 for even sides."""
    if side % 2 == 1:
        mid = side // 2
        return [mid * side + mid]
    lo, hi = side // 2 - 1, side // 2
    return sorted(r * side + c for r in (lo, hi) for c in (lo, hi))


def corner_cells(side: int) -> list[int]:
    return sorted({0, side - 1, side * (side - 1), side * side - 1})


def evaluate_position(session: GameSession, player: str, k: int = EVAL_TOP_K) -> float:
    """
    Expected result for `player` in [-1, 1].

    Win = +1, draw = 0, loss = -1, weighted by outcome probability and
    normalized by the probability mass the top outcomes cover.
    """
    outcomes = top_outcomes(session, k)
    if not outcomes:
        return 0.0

    total_score = 0.0
    total_probability = 0.0
    for outcome in outcomes:
        if outcome.winner == player:
            score = 1.0
        elif outcome.winner == DRAW:
            score = 0.0
        else:
            score = -1.0
        total_score += score * outcome.probability
        total_probability += outcome.probability

    if total_probability > 0:
        return total_score / total_probability
    return 0.0


def _opponent_prob(session: GameSession, square: int, opponent: str) -> float:
    cell = session.board[square]
    return cell.p_x if opponent == X else cell.p_o


def heuristic_score(session: GameSession, move: Move, player: str) -> float:
    """Quick score used to pick which candidates get a full evaluation."""
    side = session.side
    centers = center_cells(side)
    corners = corner_cells(side)
    opponent = other_player(player)
    score = 0.0

    if isinstance(move, ClassicalMove):
        # Full control of a cell
        score += 0.3
        if move.square in centers:
            score += 0.2
        if move.square in corners:
            score += 0.1
        if _opponent_prob(session, move.square, opponent) > CONTEST_THRESHOLD:
            score += 0.2
        return score

    n = len(move.allocations)
    for alloc in move.allocations:
        if alloc.square in centers:
            score += 0.15 / n
        if alloc.square in corners:
            score += 0.05 / n
        if _opponent_prob(session, alloc.square, opponent) > CONTEST_THRESHOLD:
            score += 0.1 / n

    # Uneven two-way splits commit more strongly
    if n == 2:
        score += abs(move.allocations[0].prob - move.allocations[1].prob) * 0.1

    return score
