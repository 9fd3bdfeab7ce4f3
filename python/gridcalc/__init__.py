"""gridcalc — spreadsheet-style formula evaluation for in-memory grids.

Usage::

    from gridcalc import Grid, recompute, format_display

    grid = Grid([[1, 2, "=SUM(A1:B1)"], [3, 4, "=A1+B2"]])
    values = recompute(grid)          # [[1, 2, 3], [3, 4, 5]]
    format_display(values[0][2])      # "3"

    grid.commit(0, 0, "10")           # user edit; recompute again afterwards
"""

from gridcalc._grid import Grid, parse_input
from gridcalc._utils import a1_to_rowcol, column_label, rowcol_to_a1
from gridcalc.calc import (
    Diagnostic,
    ErrorKind,
    EvaluationResult,
    GridEvaluator,
    display_grid,
    evaluate_grid,
    format_display,
    recompute,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Diagnostic",
    "ErrorKind",
    "EvaluationResult",
    "Grid",
    "GridEvaluator",
    "a1_to_rowcol",
    "column_label",
    "display_grid",
    "evaluate_grid",
    "format_display",
    "parse_input",
    "recompute",
    "rowcol_to_a1",
]
