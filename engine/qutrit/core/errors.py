"""
Rule violations raised by the move engine and measurement.

Every violation is recoverable: the session passed in is left untouched
and the caller may retry with a corrected request.
"""

from __future__ import annotations


class RuleViolation(ValueError):
    """Base class for a move or action the rules do not allow."""
    code = "rule_violation"


class WrongPhase(RuleViolation):
    """Operation attempted outside its required session phase."""
    code = "wrong_phase"


class OutOfTurn(RuleViolation):
    """Move submitted by the player who does not hold the turn."""
    code = "out_of_turn"


class IndexOutOfRange(RuleViolation):
    """Target square is not on the board."""
    code = "index_out_of_range"


class DuplicateTarget(RuleViolation):
    """Split move names the same square twice."""
    code = "duplicate_target"


class TooFewTargets(RuleViolation):
    """Split move names fewer than two squares."""
    code = "too_few_targets"


class CellNotFullyEmpty(RuleViolation):
    """Classical move on a partially committed cell."""
    code = "cell_not_fully_empty"


class SplitSumInvalid(RuleViolation):
    """Split amounts are not a valid probability partition."""
    code = "split_sum_invalid"


class SplitExceedsCapacity(RuleViolation):
    """Split amount is larger than the target cell's empty probability."""
    code = "split_exceeds_capacity"
