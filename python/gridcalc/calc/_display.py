"""Display formatting for computed cell values."""

from __future__ import annotations

import math
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from gridcalc.calc._reader import is_formula


def format_display(value: Any) -> str:
    """Render a computed value for a cell.

    Integral numbers (``3`` or ``3.0``) render without decimals, other numbers
    with two decimal places; ``None`` renders empty and text as-is.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        if value.is_integer():
            return str(int(value))
        # Halves round away from zero on the exact binary value
        return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    return str(value)


def display_grid(
    grid: Sequence[Sequence[Any]],
    computed: Sequence[Sequence[Any]],
) -> list[list[str]]:
    """Display strings for every cell of *grid*.

    Formula cells show their formatted computed value; every other cell shows
    its raw value as text, unformatted.
    """
    rows: list[list[str]] = []
    for r, raw_row in enumerate(grid):
        out: list[str] = []
        for c, raw in enumerate(raw_row):
            if is_formula(raw):
                value = computed[r][c] if r < len(computed) and c < len(computed[r]) else 0
                out.append(format_display(value))
            else:
                out.append("" if raw is None else str(raw))
        rows.append(out)
    return rows
