"""
Top-K most probable classical outcomes of a board.

Cells are independent, so the probability of a classical board is the
product of each cell's probability for its resolved state. Rather than
enumerating all 3^cells boards, a best-first search walks a lattice of
per-cell choice ranks:

1. Each cell's candidate states are sorted by probability, descending.
2. The all-zero rank vector (every cell at its most likely state) is the
   single most probable outcome and seeds a max-heap.
3. Popping the heap emits the next most probable outcome; its successors
   advance exactly one cell to that cell's next candidate.

A successor is never more probable than its parent, so outcomes come off
the heap in non-increasing probability order and the search stops after
K pops.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence
import heapq
import itertools
import logging
import math

from .cells import X, O, EMPTY, DRAW, EPSILON, CELL_STATES, CellDistribution, ClassicalBoard
from .state import GameSession
from .winner import detect_winner

logger = logging.getLogger(__name__)

# Outcomes below this joint probability are not worth reporting
NEGLIGIBLE_PROBABILITY = 1e-12

DEFAULT_TOP_K = 64


@dataclass(frozen=True)
class CellOption:
    """One state a cell can resolve to."""
    state: str
    probability: float


@dataclass(frozen=True)
class Outcome:
    """A fully classical board with its joint probability and verdict."""
    board: ClassicalBoard
    probability: float
    winner: str

    def to_dict(self) -> dict:
        return {
            "board": list(self.board),
            "probability": self.probability,
            "winner": self.winner,
        }


def cell_options(cell: CellDistribution) -> list[CellOption]:
    """
    Candidate states of a cell, most probable first.

    States at or below EPSILON are dropped. Ties keep the order X, O,
    empty. If nothing survives, the most probable state is forced with
    probability 1.0 so the board still has one outcome.
    """
    options = [
        CellOption(state, cell.prob(state))
        for state in CELL_STATES
        if cell.prob(state) > EPSILON
    ]

    if not options:
        forced = max(CELL_STATES, key=cell.prob) if cell.total > 0 else EMPTY
        logger.warning("Cell %r has no state above %g; forcing %s", cell, EPSILON, forced)
        options = [CellOption(forced, 1.0)]

    options.sort(key=lambda o: o.probability, reverse=True)
    return options


def _joint_probability(options: Sequence[Sequence[CellOption]], ranks: Sequence[int]) -> float:
    return math.prod(options[cell][rank].probability for cell, rank in enumerate(ranks))


def _states(options: Sequence[Sequence[CellOption]], ranks: Sequence[int]) -> ClassicalBoard:
    return tuple(options[cell][rank].state for cell, rank in enumerate(ranks))


def rank_outcomes(board: Sequence[CellDistribution], side: int, k: int = DEFAULT_TOP_K) -> list[Outcome]:
    """
    The `k` most probable classical outcomes of `board`, most probable first.

    Each candidate's probability is recomputed from its own ranks rather
    than derived from its parent. Equal-probability candidates pop in
    insertion order, so the same board always yields the same list.
    """
    if k <= 0:
        return []

    options = [cell_options(cell) for cell in board]
    counter = itertools.count()

    start = tuple(0 for _ in options)
    seen = {_states(options, start)}
    heap = [(-_joint_probability(options, start), next(counter), start)]

    results: list[Outcome] = []
    while heap and len(results) < k:
        neg_prob, _, ranks = heapq.heappop(heap)
        probability = -neg_prob
        if probability < NEGLIGIBLE_PROBABILITY:
            break

        states = _states(options, ranks)
        results.append(Outcome(states, probability, detect_winner(states, side)))

        for cell, rank in enumerate(ranks):
            if rank + 1 >= len(options[cell]):
                continue
            successor = ranks[:cell] + (rank + 1,) + ranks[cell + 1:]
            key = _states(options, successor)
            if key in seen:
                continue
            seen.add(key)
            heapq.heappush(heap, (-_joint_probability(options, successor), next(counter), successor))

    return results


def top_outcomes(session: GameSession, k: int = DEFAULT_TOP_K) -> list[Outcome]:
    """The `k` most probable outcomes of the session's current board."""
    return rank_outcomes(session.board, session.side, k)


def outcome_summary(outcomes: Sequence[Outcome]) -> dict[str, float]:
    """Probability mass per verdict, plus the total mass the outcomes cover."""
    summary = {X: 0.0, O: 0.0, DRAW: 0.0}
    for outcome in outcomes:
        summary[outcome.winner] += outcome.probability
    summary["covered"] = sum(o.probability for o in outcomes)
    return summary
