"""
Win detection over a classical (fully resolved) board.

A line is every row, every column, the main diagonal and the
anti-diagonal: 2 * side + 2 lines of length `side`.
"""

from __future__ import annotations
from typing import Optional, Sequence

from .cells import X, O, EMPTY, DRAW, VALID_SIDES, check_side

# Precomputed line tables (initialized at module load)
WINNING_LINES: dict[int, tuple[tuple[int, ...], ...]] = {}


def _build_lines(side: int) -> tuple[tuple[int, ...], ...]:
    """All straight lines of length `side` as tuples of square indices."""
    lines = []

    # Rows
    for row in range(side):
        lines.append(tuple(row * side + col for col in range(side)))

    # Columns
    for col in range(side):
        lines.append(tuple(row * side + col for row in range(side)))

    # Main diagonal (top-left to bottom-right)
    lines.append(tuple(i * side + i for i in range(side)))

    # Anti-diagonal (top-right to bottom-left)
    lines.append(tuple(i * side + (side - 1 - i) for i in range(side)))

    return tuple(lines)


def _init_tables() -> None:
    for side in VALID_SIDES:
        WINNING_LINES[side] = _build_lines(side)


_init_tables()


def get_lines(side: int) -> tuple[tuple[int, ...], ...]:
    """Winning lines for a board of the given side."""
    return WINNING_LINES[check_side(side)]


def line_winner(board: Sequence[str], line: Sequence[int]) -> Optional[str]:
    """Mark that completes `line`, or None. Lines with an empty cell never complete."""
    first = board[line[0]]
    if first == EMPTY:
        return None
    for sq in line[1:]:
        if board[sq] != first:
            return None
    return first


def detect_winner(board: Sequence[str], side: int) -> str:
    """
    Verdict for a classical board: 'X', 'O' or 'draw'.

    A player wins with at least one complete line while the opponent has
    none. Complete lines for both players, or for neither, is a draw.
    """
    lines = get_lines(side)
    if len(board) != side * side:
        raise ValueError(f"Board has {len(board)} cells, expected {side * side}")

    x_wins = False
    o_wins = False
    for line in lines:
        mark = line_winner(board, line)
        if mark == X:
            x_wins = True
        elif mark == O:
            o_wins = True

    if x_wins and not o_wins:
        return X
    if o_wins and not x_wins:
        return O
    return DRAW
