"""Raw cell access and classification."""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from enum import Enum
from typing import Any

from gridcalc._grid import Grid
from gridcalc._utils import Coordinate
from gridcalc.calc._parser import parse_number


class CellKind(Enum):
    EMPTY = "empty"
    FORMULA = "formula"
    NUMBER = "number"
    TEXT = "text"


def is_formula(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("=")


def classify(value: Any) -> CellKind:
    """Classify a raw cell value.

    Numeric-looking text (``"42"``) counts as a number, as it does when the
    value is read in a formula.
    """
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, (bool, int, float)):
        return CellKind.NUMBER
    if isinstance(value, str):
        if value.startswith("="):
            return CellKind.FORMULA
        if value.strip() and parse_number(value) is not None:
            return CellKind.NUMBER
    return CellKind.TEXT


def to_number(value: Any) -> int | float:
    """Numeric value of a literal; empty, text and non-finite values read as 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else 0
    if isinstance(value, str) and value.strip():
        num = parse_number(value)
        if num is not None:
            return num
    return 0


class CellReader:
    """Bounds-checked read access to a grid or a plain list of rows."""

    __slots__ = ("_rows", "_shape")

    def __init__(self, grid: Grid | Sequence[Sequence[Any]]) -> None:
        self._rows = list(grid)
        n_cols = max((len(r) for r in self._rows if r is not None), default=0)
        self._shape = (len(self._rows), n_cols)

    def raw(self, row: int, col: int) -> Any:
        """Raw value at (row, col); None when empty or outside the grid."""
        if row < 0 or col < 0 or row >= len(self._rows):
            return None
        cells = self._rows[row]
        if cells is None or col >= len(cells):
            return None
        return cells[col]

    def read(self, row: int, col: int) -> tuple[CellKind, Any]:
        value = self.raw(row, col)
        return classify(value), value

    @property
    def shape(self) -> tuple[int, int]:
        return self._shape

    def iter_formulas(self) -> Iterator[tuple[Coordinate, str]]:
        """Yield ``((row, col), formula)`` for every formula cell, row-major."""
        for r, cells in enumerate(self._rows):
            if cells is None:
                continue
            for c, value in enumerate(cells):
                if is_formula(value):
                    yield (r, c), value
