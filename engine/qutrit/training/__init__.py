"""Training components: self-play batches and the strategy statistics store."""

from .selfplay import SelfPlay
from .stats import StrategyStats, GameRecord, TrainingStats, AIStats, PatternInfo
