"""Grid — the raw cell store the evaluator reads from.

Provides ``grid['A1']`` access, grows on write and never shrinks.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Iterator
from typing import Any

from gridcalc._utils import a1_to_rowcol, is_valid_coordinate

_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def parse_input(text: str) -> Any:
    """Turn text typed into a cell into the raw value to store.

    ``"=..."`` stays a formula, numeric text becomes an int or float, and
    everything else (including the empty string) is kept as text.
    Whitespace-only text is the number 0.
    """
    if text.startswith("=") or not text or "_" in text:
        return text
    if not text.strip():
        return 0
    try:
        num = float(text)
    except ValueError:
        return text
    if not math.isfinite(num):
        return text
    if _INT_RE.match(text):
        return int(text)
    return num


class Grid:
    """A possibly jagged, zero-indexed 2D store of raw cell values."""

    __slots__ = ("_rows",)

    def __init__(self, rows: Iterable[Iterable[Any]] | None = None) -> None:
        # Copy so edits never leak back into the caller's lists.
        self._rows: list[list[Any]] = [list(r) for r in rows] if rows else []

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        """``grid['A1']`` -> raw value (None when empty or out of bounds)."""
        row, col = self._decode(key)
        return self.get(row, col)

    def __setitem__(self, key: str, value: Any) -> None:
        """``grid['A1'] = 42`` — shorthand for :meth:`set`."""
        row, col = self._decode(key)
        self.set(row, col, value)

    def get(self, row: int, col: int) -> Any:
        if row < 0 or col < 0 or row >= len(self._rows):
            return None
        cells = self._rows[row]
        if col >= len(cells):
            return None
        return cells[col]

    def set(self, row: int, col: int, value: Any) -> None:
        """Write a raw value, padding rows and cells with None as needed."""
        if row < 0 or col < 0:
            raise ValueError(f"Cell indices must be >= 0, got ({row}, {col})")
        while len(self._rows) <= row:
            self._rows.append([])
        cells = self._rows[row]
        while len(cells) <= col:
            cells.append(None)
        cells[col] = value

    def commit(self, row: int, col: int, text: str) -> Any:
        """Store edited text via :func:`parse_input` and return the raw value."""
        value = parse_input(text)
        self.set(row, col, value)
        return value

    @staticmethod
    def _decode(key: str) -> tuple[int, int]:
        coord = a1_to_rowcol(key)
        if not is_valid_coordinate(coord):
            raise KeyError(f"Invalid cell reference: {key!r}")
        return coord  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Shape and iteration
    # ------------------------------------------------------------------

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    @property
    def n_cols(self) -> int:
        """Width of the widest row."""
        return max((len(r) for r in self._rows), default=0)

    def iter_cells(self) -> Iterator[tuple[int, int, Any]]:
        """Yield ``(row, col, value)`` for every stored cell, row-major."""
        for r, cells in enumerate(self._rows):
            for c, value in enumerate(cells):
                yield r, c, value

    def to_rows(self) -> list[list[Any]]:
        """Return a deep-enough copy of the rows (one new list per row)."""
        return [list(r) for r in self._rows]

    def __iter__(self) -> Iterator[list[Any]]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Grid):
            return self._rows == other._rows
        return NotImplemented

    def __repr__(self) -> str:
        return f"<Grid {self.n_rows}x{self.n_cols}>"
