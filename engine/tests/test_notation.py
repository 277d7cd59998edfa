"""Tests for move notation and game transcripts."""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.core.cells import X, O
from qutrit.core.errors import CellNotFullyEmpty
from qutrit.core.moves import ClassicalMove, SplitMove, Allocation, apply_move
from qutrit.core.notation import (
    move_to_notation, notation_to_move, format_board, format_classical_board,
    GameTranscript, session_to_text, text_to_session
)
from qutrit.core.state import create_session, READY_TO_COLLAPSE


class TestMoveNotation:
    def test_classical(self):
        assert move_to_notation(ClassicalMove(X, 4), 3) == 'b2'
        assert notation_to_move('b2', X, 3) == ClassicalMove(X, 4)

    def test_split(self):
        move = SplitMove(O, (Allocation(0, 0.5), Allocation(8, 0.5)))
        assert move_to_notation(move, 3) == 'a1:0.5,c3:0.5'
        assert notation_to_move('a1:0.5,c3:0.5', O, 3) == move

    def test_case_and_whitespace(self):
        assert notation_to_move('  B2 ', X, 3) == ClassicalMove(X, 4)

    @pytest.mark.parametrize("text", ['', 'z9', 'a1:0.5,c3', 'a1:x,b1:0.5'])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            notation_to_move(text, X, 3)


class TestFormatting:
    def test_format_board(self):
        session = apply_move(create_session(3), ClassicalMove(X, 4))
        session = apply_move(session, SplitMove(O, (Allocation(0, 0.5), Allocation(8, 0.5))))
        text = format_board(session)
        lines = text.split('\n')
        assert len(lines) == 4
        assert 'X' in lines[2]
        assert '0.00/0.50' in lines[1]

    def test_format_classical_board(self):
        text = format_classical_board(('X', 'empty', 'O', 'X'), 2)
        assert text.split('\n')[1:] == [' 1 X .', ' 2 O X']


class TestTranscript:
    def test_to_text(self):
        session = create_session(3)
        session = apply_move(session, ClassicalMove(X, 4))
        session = apply_move(session, SplitMove(O, (Allocation(0, 0.5), Allocation(8, 0.5))))
        session = apply_move(session, ClassicalMove(X, 2))
        text = session_to_text(session)
        assert '[Size "3"]' in text
        assert '[Result "*"]' in text
        assert '1. b2 a1:0.5,c3:0.5 2. c1' in text

    def test_replay(self):
        session = create_session(2)
        for sq in range(4):
            session = apply_move(session, ClassicalMove(session.current_player, sq))
        replayed = text_to_session(session_to_text(session))
        assert replayed.board == session.board
        assert replayed.moves == session.moves
        assert replayed.phase == READY_TO_COLLAPSE

    def test_from_text(self):
        text = '[Size "2"]\n[First "O"]\n[Mode "pvp"]\n[Result "*"]\n\n1. a1 b1:0.5,b2:0.5'
        record = GameTranscript.from_text(text)
        assert record.size == 2
        assert record.first == O
        assert record.moves == ['a1', 'b1:0.5,b2:0.5']

        session = record.replay()
        assert session.moves[0] == ClassicalMove(O, 0)
        assert session.current_player == O

    def test_illegal_replay_raises(self):
        record = GameTranscript(size=3, moves=['b2', 'b2'])
        with pytest.raises(CellNotFullyEmpty):
            record.replay()
