"""
Text notation for Qutrit Tic-Tac-Toe moves and games.

Moves:
- Classical: a cell label, e.g. "b2"
- Split: label:amount pairs joined by commas, e.g. "a1:0.5,c3:0.5"

Transcript example:
```
[Size "3"]
[First "X"]
[Mode "pvp"]
[Result "*"]

1. b2 a1:0.5,c3:0.5 2. c3:0.5,a3:0.5 ...
```

Move numbers increment after both players have moved (like chess).
Result is "*" until the session collapses, then 'X', 'O' or 'draw'.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import re

from .cells import X, EPSILON, sq_to_label, label_to_sq, check_side
from .moves import Move, ClassicalMove, SplitMove, Allocation, apply_move
from .state import GameSession, PVP

TAG_PATTERN = r'\[(\w+)\s+"([^"]*)"\]'


def move_to_notation(move: Move, side: int) -> str:
    """Format a move, e.g. 'b2' or 'a1:0.5,c3:0.5'."""
    if isinstance(move, ClassicalMove):
        return sq_to_label(move.square, side)
    return ','.join(
        f"{sq_to_label(a.square, side)}:{a.prob:.4g}" for a in move.allocations
    )


def notation_to_move(text: str, player: str, side: int) -> Move:
    """Parse notation into a move for `player`. Raises ValueError on bad input."""
    text = text.strip().lower()
    if not text:
        raise ValueError("Empty move")

    if ':' not in text:
        return ClassicalMove(player, label_to_sq(text, side))

    allocations = []
    for part in text.split(','):
        label, sep, amount = part.partition(':')
        if not sep:
            raise ValueError(f"Invalid split component: {part!r}. Use notation like 'a1:0.5'")
        allocations.append(Allocation(label_to_sq(label, side), float(amount)))
    return SplitMove(player, tuple(allocations))


def _format_cell(cell) -> str:
    if cell.p_x >= 1.0 - EPSILON:
        return "    X    "
    if cell.p_o >= 1.0 - EPSILON:
        return "    O    "
    if cell.is_fully_empty():
        return "    .    "
    return f"{cell.p_x:.2f}/{cell.p_o:.2f}"


def format_board(session: GameSession) -> str:
    """Probability grid. Each cell shows 'pX/pO', or the mark once certain."""
    side = session.side
    lines = ["    " + "".join(f"{chr(ord('a') + c):^10}" for c in range(side))]
    for row in range(side):
        cells = [_format_cell(session.board[row * side + col]) for col in range(side)]
        lines.append(f"{row + 1:>2}  " + " ".join(f"{c:^9}" for c in cells))
    return '\n'.join(lines)


def format_classical_board(board, side: int) -> str:
    """Grid of resolved marks ('.' for empty)."""
    symbols = ['.' if s == 'empty' else s for s in board]
    lines = ["   " + " ".join(chr(ord('a') + c) for c in range(side))]
    for row in range(side):
        lines.append(f"{row + 1:>2} " + " ".join(symbols[row * side:(row + 1) * side]))
    return '\n'.join(lines)


@dataclass
class GameTranscript:
    """Moves of a game plus the tags needed to replay them."""
    size: int = 3
    first: str = X
    mode: str = PVP
    result: str = "*"
    moves: list[str] = field(default_factory=list)

    @classmethod
    def from_session(cls, session: GameSession) -> GameTranscript:
        first = session.moves[0].player if session.moves else session.current_player
        return cls(
            size=session.side,
            first=first,
            mode=session.game_mode,
            result=session.winner or "*",
            moves=[move_to_notation(m, session.side) for m in session.moves],
        )

    def to_text(self) -> str:
        lines = [
            f'[Size "{self.size}"]',
            f'[First "{self.first}"]',
            f'[Mode "{self.mode}"]',
            f'[Result "{self.result}"]',
            '',
        ]
        parts = []
        for i, token in enumerate(self.moves):
            if i % 2 == 0:
                parts.append(f"{i // 2 + 1}. {token}")
            else:
                parts.append(token)
        if parts:
            lines.append(' '.join(parts))
        return '\n'.join(lines)

    @classmethod
    def from_text(cls, text: str) -> GameTranscript:
        record = cls()
        for tag, value in re.findall(TAG_PATTERN, text):
            tag = tag.lower()
            if tag == 'size':
                record.size = check_side(int(value))
            elif tag == 'first':
                record.first = value
            elif tag == 'mode':
                record.mode = value
            elif tag == 'result':
                record.result = value

        move_text = re.sub(TAG_PATTERN, '', text)
        for token in move_text.split():
            if re.match(r'^\d+\.$', token):
                continue
            record.moves.append(token)
        return record

    def replay(self) -> GameSession:
        """Apply every move through the engine. Illegal moves raise."""
        session = GameSession.new_game(side=self.size, first_player=self.first, game_mode=self.mode)
        for token in self.moves:
            move = notation_to_move(token, session.current_player, session.side)
            session = apply_move(session, move)
        return session


def session_to_text(session: GameSession) -> str:
    """Convert a session to transcript text."""
    return GameTranscript.from_session(session).to_text()


def text_to_session(text: str) -> GameSession:
    """Parse a transcript and return the replayed session."""
    return GameTranscript.from_text(text).replay()
