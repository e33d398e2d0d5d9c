"""Rule coverage and restriction evaluation engine.

Pure logic only: no I/O happens here apart from awaiting the usage source
handed to :func:`evaluate_restriction`.
"""

from appguard.engine.coverage import compute_coverage_grid, is_valid_rule
from appguard.engine.evaluator import evaluate_restriction, is_in_range, is_violated
from appguard.engine.patterns import DayPattern, expand_pattern, validate_pattern_input

__all__ = [
    "DayPattern",
    "compute_coverage_grid",
    "evaluate_restriction",
    "expand_pattern",
    "is_in_range",
    "is_valid_rule",
    "is_violated",
    "validate_pattern_input",
]
