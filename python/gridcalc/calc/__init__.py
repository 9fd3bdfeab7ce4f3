"""gridcalc.calc - Formula evaluation engine for grids."""

from gridcalc.calc._display import display_grid, format_display
from gridcalc.calc._evaluator import GridEvaluator, evaluate_grid, recompute
from gridcalc.calc._functions import SUPPORTED_FUNCTIONS, FunctionRegistry, is_supported
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._guard import CycleGuard
from gridcalc.calc._parser import (
    all_references,
    expand_range,
    formula_references,
    parse_range_references,
    resolve_token,
)
from gridcalc.calc._protocol import (
    ArithmeticSyntaxError,
    CalcEngine,
    Diagnostic,
    ErrorKind,
    EvaluationResult,
    FormulaError,
    InvalidToken,
)

__all__ = [
    "ArithmeticSyntaxError",
    "CalcEngine",
    "CycleGuard",
    "DependencyGraph",
    "Diagnostic",
    "ErrorKind",
    "EvaluationResult",
    "FormulaError",
    "FunctionRegistry",
    "GridEvaluator",
    "InvalidToken",
    "SUPPORTED_FUNCTIONS",
    "all_references",
    "display_grid",
    "evaluate_grid",
    "expand_range",
    "format_display",
    "formula_references",
    "is_supported",
    "parse_range_references",
    "recompute",
    "resolve_token",
]
