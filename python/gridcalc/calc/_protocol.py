"""CalcEngine protocol, diagnostics and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from gridcalc._utils import Coordinate, rowcol_to_a1

if TYPE_CHECKING:
    from gridcalc._grid import Grid


class ErrorKind(str, Enum):
    """Why a formula (or part of one) fell back to the ``0`` sentinel."""

    INVALID_REFERENCE = "invalid-reference"
    CIRCULAR_REFERENCE = "circular-reference"
    INVALID_EXPRESSION = "invalid-expression"
    INVALID_FORMULA = "invalid-formula"


class FormulaError(ValueError):
    """Base for errors raised while evaluating a formula.

    These never escape :func:`recompute`; the evaluator turns them into a
    ``0`` value plus a :class:`Diagnostic`.
    """

    kind: ErrorKind = ErrorKind.INVALID_FORMULA


class InvalidToken(FormulaError):
    """A token is neither a range, a reference nor a numeric literal."""

    kind = ErrorKind.INVALID_REFERENCE


class ArithmeticSyntaxError(FormulaError):
    """An arithmetic expression contains a disallowed character or is malformed."""

    kind = ErrorKind.INVALID_EXPRESSION


@dataclass(frozen=True)
class Diagnostic:
    """One recorded fallback: which cell, what went wrong."""

    coordinate: Coordinate  # formula cell whose evaluation hit the problem
    kind: ErrorKind
    detail: str = ""

    @property
    def cell_ref(self) -> str:
        return rowcol_to_a1(*self.coordinate)


@dataclass(frozen=True)
class EvaluationResult:
    """Computed values for a whole grid plus what went wrong on the way."""

    values: list[list[Any]]
    diagnostics: tuple[Diagnostic, ...] = ()
    total_formula_cells: int = 0
    cyclic_cells: frozenset[Coordinate] = field(default_factory=frozenset)

    @property
    def error_ratio(self) -> float:
        if self.total_formula_cells == 0:
            return 0.0
        failed = {d.coordinate for d in self.diagnostics}
        return len(failed) / self.total_formula_cells

    def diagnostics_for(self, row: int, col: int) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.coordinate == (row, col)]


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for grid evaluation engines."""

    def evaluate(self, grid: Grid | list[list[Any]]) -> EvaluationResult:
        """Evaluate every formula cell and return the parallel computed grid."""
        ...

    def evaluate_cell(self, grid: Grid | list[list[Any]], row: int, col: int) -> Any:
        """Evaluate a single cell from scratch."""
        ...
