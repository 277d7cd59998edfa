"""
Measurement: one-shot collapse of every cell to a classical value.

Each cell is sampled independently from its own distribution using one
uniform draw r in [0, 1):

    r < p_x           -> X
    r < p_x + p_o     -> O
    otherwise         -> empty

Cells whose empty probability is within EPSILON of zero have their X/O
pair renormalized to sum to exactly 1 first, so residual floating-point
mass in the empty slot cannot bias the result toward 'empty'.
"""

from __future__ import annotations
from typing import Optional, Protocol
import logging

import numpy as np

from .cells import X, O, EMPTY, EPSILON, CellDistribution
from .errors import WrongPhase
from .state import GameSession, READY_TO_COLLAPSE, COLLAPSED
from .winner import detect_winner

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    """Anything that yields uniform floats in [0, 1), e.g. numpy.random.Generator."""
    def random(self) -> float:
        ...


def measurement_probabilities(cell: CellDistribution) -> tuple[float, float]:
    """(p_x, p_o) used for sampling, after clamping and renormalization."""
    cell = cell.clamped()
    non_empty = cell.p_x + cell.p_o
    if cell.p_empty <= EPSILON and non_empty > EPSILON:
        return cell.p_x / non_empty, cell.p_o / non_empty
    return cell.p_x, cell.p_o


def resolve_cell(cell: CellDistribution, r: float) -> str:
    """Resolve a cell given one uniform draw `r`."""
    p_x, p_o = measurement_probabilities(cell)
    if r < p_x:
        return X
    if r < p_x + p_o:
        return O
    return EMPTY


def collapse(session: GameSession, rng: Optional[RandomSource] = None) -> GameSession:
    """
    Measure every cell and attach the classical board and verdict.

    Only legal in phase 'ready_to_collapse'. Draws are taken in square
    order, one per cell, so a seeded generator gives a reproducible board.
    """
    if session.phase != READY_TO_COLLAPSE:
        raise WrongPhase(
            f"Cannot collapse board in game phase '{session.phase}'. "
            f"Game must be in 'ready_to_collapse' phase."
        )
    if rng is None:
        rng = np.random.default_rng()

    collapsed_board = tuple(resolve_cell(cell, float(rng.random())) for cell in session.board)
    winner = detect_winner(collapsed_board, session.side)

    logger.info("Collapsed session %s: winner=%s", session.id, winner)

    return session.evolve(
        phase=COLLAPSED,
        collapsed_board=collapsed_board,
        winner=winner,
    )
