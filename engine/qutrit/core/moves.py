"""
Move validation and application for Qutrit Tic-Tac-Toe.

Two move types:
- Classical: commit one fully empty cell to the mover's mark.
- Split: spread one unit of probability over two or more cells, each
  share taken from that cell's remaining empty probability.

`apply_move` is the only place a board changes. It never mutates its
input; rejected moves raise a RuleViolation and leave the session as-is.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Union
import logging
import math

from .cells import X, O, EPSILON, CellDistribution, check_player, other_player
from .errors import (
    WrongPhase, OutOfTurn, IndexOutOfRange, DuplicateTarget, TooFewTargets,
    CellNotFullyEmpty, SplitSumInvalid, SplitExceedsCapacity
)
from .state import GameSession, PLAYING, READY_TO_COLLAPSE

logger = logging.getLogger(__name__)

CLASSICAL = "classical"
SPLIT = "split"


@dataclass(frozen=True)
class ClassicalMove:
    """Fully commit `square` to `player`."""
    player: str
    square: int

    type = CLASSICAL

    @property
    def squares(self) -> tuple[int, ...]:
        return (self.square,)


@dataclass(frozen=True)
class Allocation:
    """Share of a split move placed on one square."""
    square: int
    prob: float


@dataclass(frozen=True)
class SplitMove:
    """Distribute one unit of `player` probability over several squares."""
    player: str
    allocations: tuple[Allocation, ...]

    type = SPLIT

    @property
    def squares(self) -> tuple[int, ...]:
        return tuple(a.square for a in self.allocations)

    @classmethod
    def from_mapping(cls, player: str, amounts: dict[int, float]) -> SplitMove:
        """Build from a {square: amount} mapping."""
        return cls(player, tuple(Allocation(sq, p) for sq, p in amounts.items()))


Move = Union[ClassicalMove, SplitMove]


@dataclass(frozen=True)
class ValidCell:
    """A square that can still receive probability."""
    index: int
    p_empty: float

    def to_dict(self) -> dict:
        return {"index": self.index, "probEmpty": self.p_empty}


def move_to_dict(move: Move) -> dict:
    """Wire form of a move."""
    if isinstance(move, ClassicalMove):
        return {"type": CLASSICAL, "player": move.player, "square": move.square}
    return {
        "type": SPLIT,
        "player": move.player,
        "allocations": [{"square": a.square, "prob": a.prob} for a in move.allocations],
    }


def move_from_dict(data: dict) -> Move:
    """Parse a move from its wire form. Raises ValueError on bad input."""
    try:
        move_type = data["type"]
        player = check_player(data["player"])
        if move_type == CLASSICAL:
            return ClassicalMove(player, int(data["square"]))
        if move_type == SPLIT:
            allocations = tuple(
                Allocation(int(a["square"]), float(a["prob"]))
                for a in data["allocations"]
            )
            return SplitMove(player, allocations)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed move: {data!r}") from e
    raise ValueError(f"Unknown move type: {move_type!r}")


class MoveValidator:
    """Checks a move against a session. Each check raises on failure."""

    @staticmethod
    def check_phase(session: GameSession) -> None:
        if session.phase != PLAYING:
            raise WrongPhase(
                f"Cannot make a move in game phase '{session.phase}'. "
                f"Game must be in 'playing' phase."
            )

    @staticmethod
    def check_turn(session: GameSession, move: Move) -> None:
        if move.player != session.current_player:
            raise OutOfTurn(
                f"It is {session.current_player}'s turn, but received move from {move.player}."
            )

    @staticmethod
    def check_square(session: GameSession, square: int) -> None:
        if isinstance(square, bool) or not isinstance(square, int):
            raise IndexOutOfRange(f"Invalid square index {square!r}.")
        if not 0 <= square < session.num_cells:
            raise IndexOutOfRange(
                f"Invalid square index {square}. Must be between 0 and {session.num_cells - 1}."
            )

    @staticmethod
    def check_classical(session: GameSession, move: ClassicalMove) -> None:
        MoveValidator.check_square(session, move.square)
        cell = session.board[move.square]
        if not cell.is_fully_empty():
            raise CellNotFullyEmpty(
                f"Classical move requires an entirely empty cell. "
                f"Cell {move.square} has probEmpty={cell.p_empty}."
            )

    @staticmethod
    def check_split(session: GameSession, move: SplitMove) -> None:
        if len(move.allocations) < 2:
            raise TooFewTargets("Split move requires at least 2 target squares.")

        seen: set[int] = set()
        for alloc in move.allocations:
            MoveValidator.check_square(session, alloc.square)
            if alloc.square in seen:
                raise DuplicateTarget(f"Duplicate square {alloc.square} in split move.")
            seen.add(alloc.square)

        for alloc in move.allocations:
            if not math.isfinite(alloc.prob) or alloc.prob < 0.0:
                raise SplitSumInvalid(
                    f"Split move probability must be non-negative. "
                    f"Got {alloc.prob} for square {alloc.square}."
                )

        total = sum(a.prob for a in move.allocations)
        if abs(total - 1.0) > EPSILON:
            raise SplitSumInvalid(f"Split move probabilities must sum to 1. Got {total:.4f}.")

        for alloc in move.allocations:
            cell = session.board[alloc.square]
            if alloc.prob > cell.p_empty + EPSILON:
                raise SplitExceedsCapacity(
                    f"Split amount {alloc.prob:.3f} exceeds available empty probability "
                    f"{cell.p_empty:.3f} in cell {alloc.square}."
                )

    @staticmethod
    def validate(session: GameSession, move: Move) -> None:
        """Run every check for `move`, in rule order."""
        MoveValidator.check_phase(session)
        MoveValidator.check_turn(session, move)
        if isinstance(move, ClassicalMove):
            MoveValidator.check_classical(session, move)
        elif isinstance(move, SplitMove):
            MoveValidator.check_split(session, move)
        else:
            raise ValueError(f"Unknown move type: {type(move).__name__}")


def _add_mass(cell: CellDistribution, player: str, amount: float) -> CellDistribution:
    """Move `amount` from the empty slot to `player`'s slot, clamped to [0, 1]."""
    p_x = cell.p_x + amount if player == X else cell.p_x
    p_o = cell.p_o + amount if player == O else cell.p_o
    return CellDistribution(p_empty=cell.p_empty - amount, p_x=p_x, p_o=p_o).clamped()


def validate_move(session: GameSession, move: Move) -> None:
    """Raise the matching RuleViolation if `move` is not legal."""
    MoveValidator.validate(session, move)


def is_legal_move(session: GameSession, move: Move) -> bool:
    """Check if a move is legal."""
    try:
        MoveValidator.validate(session, move)
    except ValueError:
        return False
    return True


def apply_move(session: GameSession, move: Move) -> GameSession:
    """
    Validate and apply a move, returning the next session.

    Turn flips, the move count increments, the move is appended to the
    history, and the phase becomes 'ready_to_collapse' once every
    required move has been played.
    """
    try:
        MoveValidator.validate(session, move)
    except ValueError as e:
        logger.debug("Rejected move %r in session %s: %s", move, session.id, e)
        raise

    board = list(session.board)
    if isinstance(move, ClassicalMove):
        board[move.square] = CellDistribution.certain(move.player)
    else:
        for alloc in move.allocations:
            board[alloc.square] = _add_mass(board[alloc.square], move.player, alloc.prob)

    moves_played = session.moves_played + 1
    phase = READY_TO_COLLAPSE if moves_played >= session.total_moves else PLAYING

    return session.evolve(
        board=tuple(board),
        current_player=other_player(session.current_player),
        moves_played=moves_played,
        moves=session.moves + (move,),
        phase=phase,
    )


def valid_move_targets(session: GameSession) -> list[ValidCell]:
    """Squares with empty probability above EPSILON, in index order."""
    return [
        ValidCell(index=i, p_empty=cell.p_empty)
        for i, cell in enumerate(session.board)
        if cell.p_empty > EPSILON
    ]
