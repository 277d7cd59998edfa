"""Tests for the AI opponent."""

import pytest
import sys
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from qutrit.core.cells import X, O
from qutrit.core.collapse import collapse
from qutrit.core.moves import (
    ClassicalMove, SplitMove, Allocation, apply_move, is_legal_move, valid_move_targets
)
from qutrit.core.state import create_session, PLAYING
from qutrit.ai.evaluator import center_cells, corner_cells, evaluate_position, heuristic_score
from qutrit.ai.player import (
    AIConfig, HeuristicStrategy, RandomStrategy, get_ai_move, random_move,
    generate_classical_moves, generate_split_moves, generate_multi_split
)


def split(player, *pairs):
    return SplitMove(player, tuple(Allocation(sq, p) for sq, p in pairs))


class TestAIConfig:
    def test_defaults(self):
        config = AIConfig()
        assert config.exploration_rate == 0.1
        assert config.to_dict() == {
            "learningRate": 0.01,
            "explorationRate": 0.1,
            "discountFactor": 0.95,
            "batchSize": 32,
        }

    def test_update(self):
        config = AIConfig()
        config.update(exploration_rate=0.3, batch_size=64)
        assert config.exploration_rate == 0.3
        assert config.batch_size == 64

    @pytest.mark.parametrize("changes", [
        {"exploration_rate": 1.5},
        {"learning_rate": -0.1},
        {"batch_size": 0},
        {"batch_size": 2.5},
        {"discount_factor": True},
        {"temperature": 0.5},
    ])
    def test_invalid_update(self, changes):
        config = AIConfig()
        with pytest.raises(ValueError):
            config.update(**changes)
        assert config == AIConfig()

    def test_invalid_update_is_atomic(self):
        config = AIConfig()
        with pytest.raises(ValueError):
            config.update(exploration_rate=0.5, batch_size=-1)
        assert config.exploration_rate == 0.1


class TestEvaluator:
    def test_center_and_corners(self):
        assert center_cells(3) == [4]
        assert center_cells(4) == [5, 6, 9, 10]
        assert center_cells(2) == [0, 1, 2, 3]
        assert corner_cells(3) == [0, 2, 6, 8]

    def test_heuristic_prefers_center(self):
        session = create_session(3)
        center = heuristic_score(session, ClassicalMove(X, 4), X)
        corner = heuristic_score(session, ClassicalMove(X, 0), X)
        edge = heuristic_score(session, ClassicalMove(X, 1), X)
        assert center == pytest.approx(0.5)
        assert corner == pytest.approx(0.4)
        assert edge == pytest.approx(0.3)

    def test_heuristic_split(self):
        session = create_session(3)
        even = heuristic_score(session, split(X, (4, 0.5), (0, 0.5)), X)
        uneven = heuristic_score(session, split(X, (4, 0.9), (0, 0.1)), X)
        assert even == pytest.approx(0.075 + 0.025)
        assert uneven == pytest.approx(even + 0.08)

    def test_heuristic_contested(self):
        session = apply_move(create_session(3), split(X, (1, 0.5), (7, 0.5)))
        contested = heuristic_score(session, split(O, (1, 0.5), (3, 0.5)), O)
        assert contested == pytest.approx(0.05)

    def test_evaluate_certain_win(self):
        session = create_session(3)
        for sq in (0, 3, 1, 4, 2):
            session = apply_move(session, ClassicalMove(session.current_player, sq))
        assert evaluate_position(session, X) == pytest.approx(1.0)
        assert evaluate_position(session, O) == pytest.approx(-1.0)

    def test_evaluate_empty_board(self):
        assert evaluate_position(create_session(3), X) == 0.0


class TestMoveGeneration:
    def test_classical_candidates(self):
        session = apply_move(create_session(3), split(X, (0, 0.5), (1, 0.5)))
        moves = generate_classical_moves(session, valid_move_targets(session))
        assert {m.square for m in moves} == set(range(2, 9))

    def test_split_candidates_are_legal_and_unique(self):
        session = apply_move(create_session(3), ClassicalMove(X, 4))
        moves = generate_split_moves(session, valid_move_targets(session))
        assert moves
        assert all(is_legal_move(session, m) for m in moves)
        keys = [tuple((a.square, round(a.prob, 3)) for a in m.allocations) for m in moves]
        assert len(keys) == len(set(keys))

    def test_multi_split_fallback(self):
        session = create_session(2)
        session = apply_move(session, split(X, (0, 0.6), (1, 0.4)))
        session = apply_move(session, split(O, (1, 0.6), (2, 0.4)))
        session = apply_move(session, split(X, (2, 0.6), (3, 0.4)))
        targets = valid_move_targets(session)
        assert [t.index for t in targets] == [0, 3]
        move = generate_multi_split(session, targets)
        assert move is not None
        assert is_legal_move(session, move)
        assert sum(a.prob for a in move.allocations) == pytest.approx(1.0)

    def test_random_move_is_legal(self):
        rng = np.random.default_rng(3)
        session = create_session(3)
        for _ in range(9):
            move = random_move(session, rng)
            assert is_legal_move(session, move)
            session = apply_move(session, move)


class TestStrategies:
    def test_heuristic_move_is_legal(self):
        strategy = HeuristicStrategy(AIConfig(exploration_rate=0.0), np.random.default_rng(0))
        session = create_session(3)
        move = strategy.choose_move(session)
        assert is_legal_move(session, move)

    def test_heuristic_takes_winning_cell(self):
        session = create_session(3)
        for sq in (0, 3, 1, 6):
            session = apply_move(session, ClassicalMove(session.current_player, sq))
        move = get_ai_move(session, AIConfig(exploration_rate=0.0), np.random.default_rng(0))
        assert move == ClassicalMove(X, 2)

    def test_full_game(self):
        rng = np.random.default_rng(11)
        x_player = HeuristicStrategy(AIConfig(exploration_rate=0.2), rng)
        o_player = RandomStrategy(rng)
        session = create_session(3)
        while session.phase == PLAYING:
            strategy = x_player if session.current_player == X else o_player
            move = strategy.choose_move(session)
            if move is None:
                break
            session = apply_move(session, move)
        assert session.moves_played > 0

    def test_no_move_after_game(self):
        session = create_session(2)
        for sq in range(4):
            session = apply_move(session, ClassicalMove(session.current_player, sq))
        assert get_ai_move(session) is None
        assert RandomStrategy().choose_move(collapse(session)) is None
