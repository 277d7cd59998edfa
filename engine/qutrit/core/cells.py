"""
Cell distributions and board helpers for Qutrit Tic-Tac-Toe.

Board layout (side x side, row-major, row 0 at the top):

  3x3:   a   b   c
     1 | 0   1   2
     2 | 3   4   5
     3 | 6   7   8

Square index = row * side + col. Labels are column letter + row number,
so square 5 on a 3x3 board is "c2".

Every cell holds a probability triple (empty, X, O) summing to 1.
"""

from __future__ import annotations
from dataclasses import dataclass

# Marks and verdicts
X = "X"
O = "O"
EMPTY = "empty"
DRAW = "draw"
PLAYERS = (X, O)
CELL_STATES = (X, O, EMPTY)

# Supported board sides
VALID_SIDES = (2, 3, 4)

# Tolerance for probability comparisons
EPSILON = 1e-3


@dataclass(frozen=True)
class CellDistribution:
    """Probability of a cell resolving to empty, X or O."""
    p_empty: float = 1.0
    p_x: float = 0.0
    p_o: float = 0.0

    def prob(self, state: str) -> float:
        """Probability of resolving to `state` (X, O or empty)."""
        if state == X:
            return self.p_x
        if state == O:
            return self.p_o
        if state == EMPTY:
            return self.p_empty
        raise ValueError(f"Unknown cell state: {state!r}")

    @property
    def total(self) -> float:
        return self.p_empty + self.p_x + self.p_o

    def is_normalized(self, tolerance: float = EPSILON) -> bool:
        """Components are non-negative and sum to 1 within tolerance."""
        if min(self.p_empty, self.p_x, self.p_o) < 0.0:
            return False
        return abs(self.total - 1.0) <= tolerance

    def is_fully_empty(self) -> bool:
        return self.p_empty >= 1.0 - EPSILON

    def clamped(self) -> CellDistribution:
        """Copy with each component clipped to [0, 1]."""
        return CellDistribution(
            p_empty=_clamp(self.p_empty),
            p_x=_clamp(self.p_x),
            p_o=_clamp(self.p_o),
        )

    def to_dict(self) -> dict:
        return {"probEmpty": self.p_empty, "probX": self.p_x, "probO": self.p_o}

    @classmethod
    def from_dict(cls, data: dict) -> CellDistribution:
        return cls(
            p_empty=float(data["probEmpty"]),
            p_x=float(data["probX"]),
            p_o=float(data["probO"]),
        )

    @classmethod
    def certain(cls, state: str) -> CellDistribution:
        """Distribution that resolves to `state` with probability 1."""
        if state == X:
            return cls(0.0, 1.0, 0.0)
        if state == O:
            return cls(0.0, 0.0, 1.0)
        if state == EMPTY:
            return cls(1.0, 0.0, 0.0)
        raise ValueError(f"Unknown cell state: {state!r}")


Board = tuple[CellDistribution, ...]
ClassicalBoard = tuple[str, ...]


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def check_side(side: int) -> int:
    """Validate a board side, returning it unchanged."""
    if side not in VALID_SIDES:
        raise ValueError(f"Invalid board size {side}. Must be 2, 3, or 4.")
    return side


def check_player(player: str) -> str:
    if player not in PLAYERS:
        raise ValueError(f"Invalid player {player!r}. Must be 'X' or 'O'.")
    return player


def other_player(player: str) -> str:
    """The opponent of `player`."""
    return O if check_player(player) == X else X


def empty_board(side: int) -> Board:
    """A board of fully empty cells."""
    check_side(side)
    return tuple(CellDistribution() for _ in range(side * side))


def sq_to_rowcol(sq: int, side: int) -> tuple[int, int]:
    """Convert square index to (row, col)."""
    return sq // side, sq % side


def rowcol_to_sq(row: int, col: int, side: int) -> int:
    """Convert (row, col) to square index."""
    return row * side + col


def sq_to_label(sq: int, side: int) -> str:
    """Convert square index to a label such as 'b2'."""
    row, col = sq_to_rowcol(sq, side)
    return chr(ord('a') + col) + str(row + 1)


def label_to_sq(label: str, side: int) -> int:
    """Parse a label such as 'b2' into a square index."""
    label = label.strip().lower()
    if len(label) < 2 or not label[0].isalpha() or not label[1:].isdigit():
        raise ValueError(f"Invalid square label: {label!r}")
    col = ord(label[0]) - ord('a')
    row = int(label[1:]) - 1
    if not (0 <= row < side and 0 <= col < side):
        raise ValueError(f"Square {label!r} is off a {side}x{side} board")
    return rowcol_to_sq(row, col, side)
