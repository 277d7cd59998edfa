"""
FastAPI server for the Qutrit Tic-Tac-Toe engine.

Provides a REST API for game sessions, outcome forecasts, and the AI
opponent's configuration and training.

All mutable server state (sessions, strategy statistics, AI config) lives
on `app.state` and reaches handlers through dependencies.
"""

from __future__ import annotations
import logging
import os
import threading
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path
from typing import Callable, Literal, Optional

import numpy as np
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from qutrit import __version__
from qutrit.core.cells import X, O
from qutrit.core.collapse import collapse
from qutrit.core.errors import OutOfTurn, RuleViolation, WrongPhase
from qutrit.core.moves import Move, apply_move, move_from_dict, move_to_dict, valid_move_targets
from qutrit.core.outcomes import DEFAULT_TOP_K, outcome_summary, top_outcomes
from qutrit.core.state import GameSession, COLLAPSED, PLAYING, PVA
from qutrit.ai.player import AIConfig, get_ai_move
from qutrit.training.selfplay import MAX_GAMES_PER_BATCH, SelfPlay
from qutrit.training.stats import StrategyStats

from . import persistence

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"

# Sessions untouched for longer than this are dropped at startup
SESSION_MAX_AGE_DAYS = 7


# --- Pydantic Models ---

class HealthResponse(BaseModel):
    status: str
    version: str
    sessions: int


class NewGameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size: Literal[2, 3, 4] = 3
    game_mode: Literal["pvp", "pva"] = Field("pvp", alias="gameMode")
    ai_player: Optional[Literal["X", "O"]] = Field(None, alias="aiPlayer")


class AllocationPayload(BaseModel):
    square: int
    prob: float


class MovePayload(BaseModel):
    type: Literal["classical", "split"]
    player: Optional[Literal["X", "O"]] = None
    square: Optional[int] = None
    allocations: Optional[list[AllocationPayload]] = None


class MoveRequest(BaseModel):
    move: MovePayload


class ConfigUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    learning_rate: Optional[float] = Field(None, alias="learningRate")
    exploration_rate: Optional[float] = Field(None, alias="explorationRate")
    discount_factor: Optional[float] = Field(None, alias="discountFactor")
    batch_size: Optional[int] = Field(None, alias="batchSize")


class TrainRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    num_games: int = Field(10, alias="numGames", ge=1, le=MAX_GAMES_PER_BATCH)
    size: Literal[2, 3, 4] = 3
    mode: Literal["random", "self"] = "random"


# --- Server State ---

class SessionStore:
    """
    Keyed map of session id to GameSession.

    Sessions are immutable snapshots, so readers never need the lock.
    Writers go through `transition`, which runs read-apply-write under the
    lock; two concurrent collapses of one session cannot both succeed.
    """

    def __init__(self, db_path: Optional[Path] = None, persist: bool = True):
        self._sessions: dict[str, GameSession] = {}
        self._lock = threading.Lock()
        self.db_path = db_path
        self.persist = persist

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> GameSession:
        """Return the session or raise KeyError."""
        return self._sessions[session_id]

    def load(self, sessions) -> int:
        """Add sessions without persisting them. Returns the count added."""
        with self._lock:
            for session in sessions:
                self._sessions[session.id] = session
        return len(self._sessions)

    def add(self, session: GameSession) -> GameSession:
        with self._lock:
            self._save(session)
            self._sessions[session.id] = session
        return session

    def transition(self, session_id: str, fn: Callable[[GameSession], GameSession]) -> GameSession:
        """
        Replace the stored session with `fn(session)` under the lock.

        If `fn` or the database write raises, the stored session is left
        unchanged.
        """
        with self._lock:
            updated = fn(self._sessions[session_id])
            self._save(updated)
            self._sessions[session_id] = updated
        return updated

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
            if self.persist:
                persistence.delete_session(session_id, self.db_path)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def _save(self, session: GameSession) -> None:
        if self.persist:
            persistence.save_session(session, self.db_path)


class AIState:
    """AI configuration, strategy statistics and the shared random generator."""

    def __init__(self, seed: Optional[int] = None):
        self.config = AIConfig()
        self.stats = StrategyStats()
        self.rng = np.random.default_rng(seed)
        self.lock = threading.Lock()


# --- Dependencies ---

def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_ai(request: Request) -> AIState:
    return request.app.state.ai


def find_session(store: SessionStore, session_id: str) -> GameSession:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Game not found")


def _play_ai_reply(session: GameSession, ai: AIState) -> GameSession:
    """In pva games, let the AI move while it holds the turn."""
    if session.game_mode != PVA or session.phase != PLAYING:
        return session
    if session.current_player != session.ai_player:
        return session

    with ai.lock:
        move = get_ai_move(session, ai.config, ai.rng)
    if move is None:
        return session
    try:
        return apply_move(session, move)
    except RuleViolation as e:
        logger.warning("AI move %s rejected in game %s: %s", move_to_dict(move), session.id, e)
        return session


def _resolve_move(session: GameSession, payload: MovePayload) -> Move:
    data = payload.model_dump(exclude_none=True)
    data.setdefault("player", session.current_player)
    return move_from_dict(data)


# --- App Setup ---

def create_app(
    db_path: Optional[Path] = None,
    persist: bool = True,
    seed: Optional[int] = None,
    cors_origins: Optional[list[str]] = None
) -> FastAPI:
    """Build the application with its own session store and AI state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the database and restore sessions and statistics."""
        if persist:
            persistence.init_db(db_path)
            removed = persistence.cleanup_old_sessions(max_age_days=SESSION_MAX_AGE_DAYS, db_path=db_path)
            if removed:
                logger.info("Cleaned up %d old sessions", removed)
            count = app.state.store.load(persistence.load_all_sessions(db_path))
            logger.info("Loaded %d sessions from database", count)

            stats = app.state.ai.stats
            records = persistence.load_game_records(db_path)
            for record in records:
                stats.record_game(record.moves, record.winner, record.ai_player)
            for entry in persistence.load_training_history(db_path):
                stats.add_training_stats(entry)
            logger.info("Loaded %d game records from database", len(records))

        yield

        # Sessions are persisted on each change
        app.state.store.clear()

    app = FastAPI(
        title="Qutrit Tic-Tac-Toe Engine",
        description="Game engine API for probabilistic tic-tac-toe",
        version=__version__,
        lifespan=lifespan
    )
    app.state.store = SessionStore(db_path=db_path, persist=persist)
    app.state.ai = AIState(seed=seed)
    app.state.db_path = db_path
    app.state.persist = persist

    if cors_origins is None:
        cors_origins = os.environ.get("QUTRIT_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in cors_origins if origin.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RuleViolation)
    async def rule_violation_handler(request: Request, exc: RuleViolation):
        return JSONResponse(status_code=400, content={"detail": {"error": str(exc), "code": exc.code}})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": {"error": str(exc), "code": "invalid_request"}})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    """Attach the game and AI endpoints to `app`."""

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(store: SessionStore = Depends(get_store)):
        return HealthResponse(status="ok", version=__version__, sessions=len(store))

    # --- Game Endpoints ---

    @app.post("/api/game/new")
    def new_game(
        request: Optional[NewGameRequest] = None,
        store: SessionStore = Depends(get_store),
        ai: AIState = Depends(get_ai)
    ):
        """Create a game. In pva games without a chosen side, the AI side is random."""
        if request is None:
            request = NewGameRequest()

        ai_player = None
        if request.game_mode == PVA:
            ai_player = request.ai_player
            if ai_player is None:
                with ai.lock:
                    ai_player = X if ai.rng.random() < 0.5 else O

        session = GameSession.new_game(side=request.size, game_mode=request.game_mode, ai_player=ai_player)
        session = _play_ai_reply(session, ai)
        store.add(session)
        logger.info("Created %s game %s (%dx%d)", session.game_mode, session.id, session.side, session.side)
        return session.to_dict()

    @app.get("/api/game/{session_id}")
    async def get_game(session_id: str, store: SessionStore = Depends(get_store)):
        return find_session(store, session_id).to_dict()

    @app.get("/api/game/{session_id}/valid-moves")
    async def get_valid_moves(session_id: str, store: SessionStore = Depends(get_store)):
        session = find_session(store, session_id)
        targets = valid_move_targets(session) if session.phase == PLAYING else []
        return {"validMoves": [t.to_dict() for t in targets]}

    @app.post("/api/game/{session_id}/move")
    def make_move(
        session_id: str,
        request: MoveRequest,
        store: SessionStore = Depends(get_store),
        ai: AIState = Depends(get_ai)
    ):
        """Apply a move; in pva games the AI replies before the response."""
        find_session(store, session_id)

        def play(session: GameSession) -> GameSession:
            move = _resolve_move(session, request.move)
            if session.game_mode == PVA and move.player == session.ai_player:
                raise OutOfTurn(f"{session.ai_player} is played by the AI. Wait for the AI to move.")
            session = apply_move(session, move)
            return _play_ai_reply(session, ai)

        return store.transition(session_id, play).to_dict()

    @app.post("/api/game/{session_id}/collapse")
    def collapse_game(
        session_id: str,
        store: SessionStore = Depends(get_store),
        ai: AIState = Depends(get_ai)
    ):
        """Measure every cell. Completed pva games are recorded for the AI."""
        find_session(store, session_id)

        def measure(session: GameSession) -> GameSession:
            with ai.lock:
                return collapse(session, ai.rng)

        session = store.transition(session_id, measure)

        if session.game_mode == PVA and session.ai_player is not None:
            with ai.lock:
                record = ai.stats.record_game(session.moves, session.winner, session.ai_player)
            if app.state.persist:
                persistence.save_game_record(record, app.state.db_path)

        return session.to_dict()

    @app.get("/api/game/{session_id}/outcomes")
    async def get_outcomes(
        session_id: str,
        k: int = Query(DEFAULT_TOP_K, ge=1, le=4096),
        store: SessionStore = Depends(get_store)
    ):
        """The k most probable classical outcomes of the current board."""
        session = find_session(store, session_id)
        if session.phase == COLLAPSED:
            raise WrongPhase("Game is already collapsed.")
        outcomes = top_outcomes(session, k)
        return {
            "outcomes": [o.to_dict() for o in outcomes],
            "summary": outcome_summary(outcomes),
        }

    @app.delete("/api/game/{session_id}")
    def delete_game(session_id: str, store: SessionStore = Depends(get_store)):
        find_session(store, session_id)
        store.delete(session_id)
        return {"status": "deleted"}

    # --- AI Endpoints ---

    @app.get("/api/ai/config")
    async def get_config(ai: AIState = Depends(get_ai)):
        return ai.config.to_dict()

    @app.post("/api/ai/config")
    def update_config(request: ConfigUpdateRequest, ai: AIState = Depends(get_ai)):
        """Partial update; every field is range-checked before any is applied."""
        with ai.lock:
            ai.config.update(**request.model_dump(exclude_none=True))
            return ai.config.to_dict()

    @app.post("/api/ai/train")
    def train(request: TrainRequest, ai: AIState = Depends(get_ai)):
        """
        Run a batch of games in the threadpool.

        The batch plays on a snapshot of the config and a private stats
        store, so the AI lock is only held to take the snapshot and to merge
        the results.
        """
        with ai.lock:
            config = replace(ai.config)
            seed = int(ai.rng.integers(2**32))

        trainer = SelfPlay(config=config, stats=StrategyStats(), side=request.size, seed=seed)
        if request.mode == "self":
            trainer.self_play(request.num_games)
        else:
            trainer.run_training_batch(request.num_games)

        with ai.lock:
            result = ai.stats.merge(trainer.stats)[-1]
            stats = ai.stats.stats().to_dict()

        if app.state.persist:
            for record in trainer.stats.records:
                persistence.save_game_record(record, app.state.db_path)
            persistence.save_training_stats(result, app.state.db_path)

        size = request.size
        return {
            "message": f"Completed {request.num_games} training games on {size}x{size} board.",
            "epoch": result.to_dict(),
            "stats": stats,
        }

    @app.get("/api/ai/stats")
    def get_stats(ai: AIState = Depends(get_ai)):
        with ai.lock:
            return ai.stats.stats().to_dict()

    @app.get("/api/ai/patterns")
    def get_patterns(ai: AIState = Depends(get_ai)):
        with ai.lock:
            patterns = ai.stats.patterns()
        return {"patterns": [p.to_dict() for p in patterns]}

    @app.post("/api/ai/reset")
    def reset_stats(ai: AIState = Depends(get_ai)):
        with ai.lock:
            ai.stats.reset()
        if app.state.persist:
            persistence.clear_game_records(app.state.db_path)
        return {"message": "Strategy statistics reset."}


app = create_app()


# --- Entry Point ---

def run_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the server."""
    import uvicorn
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
