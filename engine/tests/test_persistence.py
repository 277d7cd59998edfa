"""Tests for SQLite persistence."""

import tempfile
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from server import persistence
from qutrit.core.cells import X, O
from qutrit.core.collapse import collapse
from qutrit.core.moves import ClassicalMove, SplitMove, Allocation, apply_move
from qutrit.core.state import create_session, PVA
from qutrit.training.stats import GameRecord, TrainingStats


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        persistence.init_db(db_path)
        yield db_path


def sample_session():
    session = create_session(3, game_mode=PVA, ai_player=O)
    session = apply_move(session, ClassicalMove(X, 4))
    return apply_move(session, SplitMove(O, (Allocation(0, 0.3), Allocation(8, 0.7))))


class TestSessions:
    def test_save_and_load(self, temp_db):
        session = sample_session()
        persistence.save_session(session, temp_db)
        loaded = persistence.load_session(session.id, temp_db)
        assert loaded == session

    def test_missing(self, temp_db):
        assert persistence.load_session("nope", temp_db) is None

    def test_update_in_place(self, temp_db):
        session = sample_session()
        persistence.save_session(session, temp_db)
        session = apply_move(session, ClassicalMove(X, 2))
        persistence.save_session(session, temp_db)

        sessions = persistence.load_all_sessions(temp_db)
        assert len(sessions) == 1
        assert sessions[0].moves_played == 3

    def test_collapsed_session(self, temp_db):
        session = create_session(2)
        for sq in range(4):
            session = apply_move(session, ClassicalMove(session.current_player, sq))
        session = collapse(session)
        persistence.save_session(session, temp_db)
        loaded = persistence.load_session(session.id, temp_db)
        assert loaded.collapsed_board == (X, O, X, O)
        assert loaded.winner == session.winner

    def test_delete(self, temp_db):
        session = sample_session()
        persistence.save_session(session, temp_db)
        assert persistence.delete_session(session.id, temp_db)
        assert not persistence.delete_session(session.id, temp_db)
        assert persistence.load_all_sessions(temp_db) == []

    def test_cleanup_keeps_recent(self, temp_db):
        persistence.save_session(sample_session(), temp_db)
        assert persistence.cleanup_old_sessions(max_age_days=7, db_path=temp_db) == 0

    def test_default_path(self, temp_db, monkeypatch):
        monkeypatch.setattr(persistence, 'DEFAULT_DB_PATH', temp_db)
        session = sample_session()
        persistence.save_session(session)
        assert persistence.load_session(session.id) == session


class TestGameRecords:
    def test_round_trip(self, temp_db):
        moves = (ClassicalMove(X, 4), SplitMove(O, (Allocation(0, 0.5), Allocation(1, 0.5))))
        persistence.save_game_record(GameRecord(moves=moves, winner=X, ai_player=O), temp_db)
        persistence.save_game_record(GameRecord(moves=(), winner=None, ai_player=X), temp_db)

        records = persistence.load_game_records(temp_db)
        assert len(records) == 2
        assert records[0].moves == moves
        assert records[0].winner == X
        assert records[0].ai_player == O
        assert records[1].winner is None

    def test_training_history(self, temp_db):
        for epoch in (1, 2):
            persistence.save_training_stats(TrainingStats(epoch, 0.5, 0.2, 0.1, 10), temp_db)
        history = persistence.load_training_history(temp_db)
        assert [h.epoch for h in history] == [1, 2]
        assert history[0].games_this_epoch == 10

    def test_clear(self, temp_db):
        persistence.save_game_record(GameRecord(moves=(), winner=X, ai_player=X), temp_db)
        persistence.save_training_stats(TrainingStats(1, 1.0, 1.0, 0.1, 1), temp_db)
        persistence.clear_game_records(temp_db)
        assert persistence.load_game_records(temp_db) == []
        assert persistence.load_training_history(temp_db) == []
