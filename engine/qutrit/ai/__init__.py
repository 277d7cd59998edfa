"""AI components: heuristic and random strategies, position evaluation."""

from .player import AIConfig, Strategy, RandomStrategy, HeuristicStrategy, get_ai_move
from .evaluator import evaluate_position, heuristic_score
