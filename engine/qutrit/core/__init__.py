"""Core game logic: cell distributions, sessions, moves, collapse and outcome ranking."""

from .cells import *
from .errors import *
from .state import GameSession, create_session
from .moves import (
    ClassicalMove, SplitMove, Allocation, ValidCell,
    apply_move, validate_move, is_legal_move, valid_move_targets
)
from .winner import detect_winner
from .collapse import collapse
from .outcomes import Outcome, top_outcomes, rank_outcomes
