"""
SQLite persistence for sessions and AI statistics.

Provides durable storage for game sessions, completed game records and
training history so the server can restore its store after a restart.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from qutrit.core.state import GameSession
from qutrit.core.moves import move_from_dict, move_to_dict
from qutrit.training.stats import GameRecord, TrainingStats


# Default database location (override with QUTRIT_DB_PATH)
DEFAULT_DB_PATH = Path(os.environ.get("QUTRIT_DB_PATH", Path(__file__).parent / "qutrit.db"))


def init_db(db_path: Path = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                state_json TEXT NOT NULL,
                phase TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_updated ON sessions(updated_at)")

        # Completed games used by the strategy statistics
        conn.execute("""
            CREATE TABLE IF NOT EXISTS game_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                moves_json TEXT NOT NULL,
                winner TEXT,
                ai_player TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS training_stats (
                epoch INTEGER PRIMARY KEY,
                win_rate REAL NOT NULL,
                avg_reward REAL NOT NULL,
                exploration_rate REAL NOT NULL,
                games_this_epoch INTEGER NOT NULL,
                created_at TEXT NOT NULL
            )
        """)
        conn.commit()


@contextmanager
def get_connection(db_path: Path = None):
    """Get a database connection with proper cleanup."""
    if db_path is None:
        db_path = DEFAULT_DB_PATH
    conn = sqlite3.connect(str(db_path), timeout=10.0)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def session_to_json(session: GameSession) -> str:
    """Serialize a GameSession to JSON string."""
    return json.dumps(session.to_dict())


def session_from_json(json_str: str) -> GameSession:
    """Deserialize a GameSession from JSON string."""
    return GameSession.from_dict(json.loads(json_str))


def save_session(session: GameSession, db_path: Path = None) -> None:
    """Insert or update a session."""
    now = datetime.now().isoformat()
    with get_connection(db_path) as conn:
        conn.execute("""
            INSERT INTO sessions (session_id, state_json, phase, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                state_json = excluded.state_json,
                phase = excluded.phase,
                updated_at = excluded.updated_at
        """, (session.id, session_to_json(session), session.phase, now, now))
        conn.commit()


def load_session(session_id: str, db_path: Path = None) -> Optional[GameSession]:
    """Load a session by id, or None if it does not exist."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT state_json FROM sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
    if row is None:
        return None
    return session_from_json(row["state_json"])


def load_all_sessions(db_path: Path = None) -> list[GameSession]:
    """Load every stored session, oldest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT state_json FROM sessions ORDER BY created_at").fetchall()
    return [session_from_json(row["state_json"]) for row in rows]


def delete_session(session_id: str, db_path: Path = None) -> bool:
    """Delete a session. Returns True if a row was removed."""
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
        conn.commit()
        return cursor.rowcount > 0


def cleanup_old_sessions(max_age_days: int = 7, db_path: Path = None) -> int:
    """Delete sessions not updated for `max_age_days`. Returns count removed."""
    cutoff = (datetime.now() - timedelta(days=max_age_days)).isoformat()
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM sessions WHERE updated_at < ?", (cutoff,))
        conn.commit()
        return cursor.rowcount


def save_game_record(record: GameRecord, db_path: Path = None) -> None:
    """Append a completed game record."""
    moves_json = json.dumps([move_to_dict(m) for m in record.moves])
    created = datetime.fromtimestamp(record.timestamp).isoformat()
    with get_connection(db_path) as conn:
        conn.execute(
            "INSERT INTO game_records (moves_json, winner, ai_player, created_at) VALUES (?, ?, ?, ?)",
            (moves_json, record.winner, record.ai_player, created)
        )
        conn.commit()


def save_training_stats(stats: TrainingStats, db_path: Path = None) -> None:
    """Insert or replace the summary of one training epoch."""
    with get_connection(db_path) as conn:
        conn.execute("""
            INSERT OR REPLACE INTO training_stats
                (epoch, win_rate, avg_reward, exploration_rate, games_this_epoch, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (stats.epoch, stats.win_rate, stats.avg_reward, stats.exploration_rate,
              stats.games_this_epoch, datetime.now().isoformat()))
        conn.commit()


def load_game_records(db_path: Path = None) -> list[GameRecord]:
    """Load every stored game record, oldest first."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT moves_json, winner, ai_player, created_at FROM game_records ORDER BY id"
        ).fetchall()
    return [
        GameRecord(
            moves=tuple(move_from_dict(m) for m in json.loads(row["moves_json"])),
            winner=row["winner"],
            ai_player=row["ai_player"],
            timestamp=datetime.fromisoformat(row["created_at"]).timestamp(),
        )
        for row in rows
    ]


def load_training_history(db_path: Path = None) -> list[TrainingStats]:
    """Load every stored training epoch in order."""
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT * FROM training_stats ORDER BY epoch").fetchall()
    return [
        TrainingStats(
            epoch=row["epoch"],
            win_rate=row["win_rate"],
            avg_reward=row["avg_reward"],
            exploration_rate=row["exploration_rate"],
            games_this_epoch=row["games_this_epoch"],
        )
        for row in rows
    ]


def clear_game_records(db_path: Path = None) -> None:
    """Delete every game record and training epoch."""
    with get_connection(db_path) as conn:
        conn.execute("DELETE FROM game_records")
        conn.execute("DELETE FROM training_stats")
        conn.commit()
