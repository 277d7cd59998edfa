"""
Game session representation for Qutrit Tic-Tac-Toe.

A session is an immutable snapshot. The move engine and measurement
return new sessions; nothing mutates a session in place, so any number
of readers can hold the same snapshot safely.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional
import uuid

from .cells import (
    X, Board, ClassicalBoard, CellDistribution,
    check_side, check_player, empty_board
)

# Session phases
PLAYING = "playing"
READY_TO_COLLAPSE = "ready_to_collapse"
COLLAPSED = "collapsed"
PHASES = (PLAYING, READY_TO_COLLAPSE, COLLAPSED)

# Game modes
PVP = "pvp"
PVA = "pva"
GAME_MODES = (PVP, PVA)


@dataclass(frozen=True)
class GameSession:
    """
    Complete state of one game.

    Attributes:
        id: Session identifier (uuid4 string by default)
        side: Board side length (2, 3 or 4)
        board: Tuple of side*side cell distributions, row-major
        current_player: 'X' or 'O', whoever moves next
        moves_played: Number of accepted moves
        total_moves: Moves needed to fill the board (side * side)
        phase: 'playing' -> 'ready_to_collapse' -> 'collapsed'
        moves: Accepted moves in order
        game_mode: 'pvp' or 'pva'
        ai_player: Mark played by the AI in 'pva' games
        collapsed_board: Classical board, set once collapsed
        winner: 'X', 'O' or 'draw', set once collapsed
    """
    side: int
    board: Board
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    current_player: str = X
    moves_played: int = 0
    total_moves: int = 0
    phase: str = PLAYING
    moves: tuple = ()
    game_mode: str = PVP
    ai_player: Optional[str] = None
    collapsed_board: Optional[ClassicalBoard] = None
    winner: Optional[str] = None

    @classmethod
    def new_game(
        cls,
        side: int = 3,
        first_player: str = X,
        game_mode: str = PVP,
        ai_player: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> GameSession:
        """Create a session with every cell fully empty."""
        check_side(side)
        check_player(first_player)
        if game_mode not in GAME_MODES:
            raise ValueError(f"Invalid game mode {game_mode!r}. Must be 'pvp' or 'pva'.")
        if ai_player is not None:
            check_player(ai_player)

        kwargs = {}
        if session_id is not None:
            kwargs["id"] = session_id
        return cls(
            side=side,
            board=empty_board(side),
            current_player=first_player,
            total_moves=side * side,
            game_mode=game_mode,
            ai_player=ai_player,
            **kwargs
        )

    @property
    def num_cells(self) -> int:
        return self.side * self.side

    def is_terminal(self) -> bool:
        """No further moves are legal."""
        return self.phase != PLAYING

    def evolve(self, **changes) -> GameSession:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict:
        """JSON-serializable wire form."""
        from .moves import move_to_dict

        data = {
            "id": self.id,
            "board": [cell.to_dict() for cell in self.board],
            "size": self.side,
            "currentPlayer": self.current_player,
            "movesPlayed": self.moves_played,
            "totalMoves": self.total_moves,
            "gamePhase": self.phase,
            "moves": [move_to_dict(m) for m in self.moves],
            "gameMode": self.game_mode,
        }
        if self.ai_player is not None:
            data["aiPlayer"] = self.ai_player
        if self.collapsed_board is not None:
            data["collapsedBoard"] = list(self.collapsed_board)
        if self.winner is not None:
            data["winner"] = self.winner
        return data

    @classmethod
    def from_dict(cls, data: dict) -> GameSession:
        """Rebuild a session from its wire form."""
        from .moves import move_from_dict

        side = check_side(int(data["size"]))
        board = tuple(CellDistribution.from_dict(c) for c in data["board"])
        if len(board) != side * side:
            raise ValueError(f"Board has {len(board)} cells, expected {side * side}")
        phase = data.get("gamePhase", PLAYING)
        if phase not in PHASES:
            raise ValueError(f"Unknown game phase {phase!r}")
        collapsed = data.get("collapsedBoard")
        return cls(
            id=str(data["id"]),
            side=side,
            board=board,
            current_player=check_player(data["currentPlayer"]),
            moves_played=int(data["movesPlayed"]),
            total_moves=int(data.get("totalMoves", side * side)),
            phase=phase,
            moves=tuple(move_from_dict(m) for m in data.get("moves", [])),
            game_mode=data.get("gameMode", PVP),
            ai_player=data.get("aiPlayer"),
            collapsed_board=tuple(collapsed) if collapsed is not None else None,
            winner=data.get("winner"),
        )


def create_session(side: int = 3, first_player: str = X, **kwargs) -> GameSession:
    """Create a fresh session (all cells empty, phase 'playing')."""
    return GameSession.new_game(side=side, first_player=first_player, **kwargs)
