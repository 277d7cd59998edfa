"""Tests for win detection."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.core.cells import X, O, EMPTY, DRAW
from qutrit.core.winner import detect_winner, get_lines, line_winner, WINNING_LINES


def board(text: str) -> tuple:
    """Parse 'XO_' rows into a classical board ('_' is empty)."""
    return tuple(EMPTY if ch == '_' else ch for ch in text.replace(' ', ''))


class TestLines:
    @pytest.mark.parametrize("side", [2, 3, 4])
    def test_line_count(self, side):
        lines = get_lines(side)
        assert len(lines) == 2 * side + 2
        assert all(len(line) == side for line in lines)

    def test_3x3_lines(self):
        lines = set(WINNING_LINES[3])
        assert (0, 1, 2) in lines
        assert (2, 5, 8) in lines
        assert (0, 4, 8) in lines
        assert (2, 4, 6) in lines

    def test_invalid_side(self):
        with pytest.raises(ValueError):
            get_lines(5)

    def test_line_with_empty_never_completes(self):
        assert line_winner(board("___ ___ ___"), (0, 1, 2)) is None
        assert line_winner(board("XX_ ___ ___"), (0, 1, 2)) is None
        assert line_winner(board("XXX ___ ___"), (0, 1, 2)) == X


class TestDetectWinner:
    def test_row(self):
        assert detect_winner(board("XXX OO_ ___"), 3) == X

    def test_column(self):
        assert detect_winner(board("OX_ OX_ O__"), 3) == O

    def test_diagonals(self):
        assert detect_winner(board("X_O _XO __X"), 3) == X
        assert detect_winner(board("X_O XO_ O__"), 3) == O

    def test_empty_board_is_draw(self):
        assert detect_winner(board("___ ___ ___"), 3) == DRAW

    def test_full_board_no_line(self):
        assert detect_winner(board("XOX XOO OXX"), 3) == DRAW

    def test_both_complete_is_draw(self):
        assert detect_winner(board("XXX ___ OOO"), 3) == DRAW

    def test_2x2_scenario(self):
        # Columns complete for both marks
        assert detect_winner(board("XO XO"), 2) == DRAW
        assert detect_winner(board("XX O_"), 2) == X

    def test_4x4(self):
        assert detect_winner(board("O___ _O__ __O_ ___O"), 4) == O
        assert detect_winner(board("XXX_ ____ ____ ____"), 4) == DRAW

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            detect_winner(board("XXX"), 3)
