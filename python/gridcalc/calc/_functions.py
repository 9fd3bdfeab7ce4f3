"""Built-in aggregate functions: SUM, AVERAGE, COUNT, MIN, MAX."""

from __future__ import annotations

from typing import Any, Callable

Number = int | float

# ---------------------------------------------------------------------------
# Supported function names.  Anything else is not a function call and the
# expression is evaluated as arithmetic instead.
# ---------------------------------------------------------------------------

SUPPORTED_FUNCTIONS: frozenset[str] = frozenset(
    {"SUM", "AVERAGE", "COUNT", "MIN", "MAX"}
)


def is_supported(func_name: str) -> bool:
    """Check if a function name is one of the built-ins (case-insensitive)."""
    return func_name.upper() in SUPPORTED_FUNCTIONS


# ---------------------------------------------------------------------------
# Builtin implementations.
# Each takes the flattened list of numeric operands plus *blanks*, the number
# of further empty cells (out-of-grid parts of a range) that read as 0 but were
# never materialised.  Text and empty cells count towards COUNT and AVERAGE.
# ---------------------------------------------------------------------------


def _flatten(values: list[Any]) -> list[Number]:
    result: list[Number] = []
    for v in values:
        if isinstance(v, (list, tuple)):
            result.extend(_flatten(list(v)))
        elif isinstance(v, bool):
            result.append(int(v))
        elif isinstance(v, (int, float)):
            result.append(v)
        else:
            result.append(0)
    return result


def _with_blank(nums: list[Number], blanks: int) -> list[Number]:
    # One 0 stands in for any number of blanks in MIN and MAX
    return nums + [0] if blanks else nums


def _builtin_sum(args: list[Any], blanks: int = 0) -> Number:
    return sum(_flatten(args))


def _builtin_average(args: list[Any], blanks: int = 0) -> Number:
    nums = _flatten(args)
    count = len(nums) + blanks
    if not count:
        return 0
    return sum(nums) / count


def _builtin_count(args: list[Any], blanks: int = 0) -> int:
    return len(_flatten(args)) + blanks


def _builtin_min(args: list[Any], blanks: int = 0) -> Number:
    nums = _with_blank(_flatten(args), blanks)
    if not nums:
        return 0
    return min(nums)


def _builtin_max(args: list[Any], blanks: int = 0) -> Number:
    nums = _with_blank(_flatten(args), blanks)
    if not nums:
        return 0
    return max(nums)


Builtin = Callable[[list[Any], int], Number]

_BUILTINS: dict[str, Builtin] = {
    "SUM": _builtin_sum,
    "AVERAGE": _builtin_average,
    "COUNT": _builtin_count,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
}


class FunctionRegistry:
    """Registry of callable function implementations, keyed by upper-case name."""

    def __init__(self) -> None:
        self._functions: dict[str, Builtin] = dict(_BUILTINS)

    def get(self, name: str) -> Builtin | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    def call(self, name: str, operands: list[Any], blanks: int = 0) -> Number:
        """Apply function *name* to *operands* and *blanks* implicit empty cells.

        Raises KeyError for a name that is not registered.
        """
        func = self.get(name)
        if func is None:
            raise KeyError(name)
        return func(operands, blanks)

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
