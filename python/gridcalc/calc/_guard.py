"""Cycle guard: the set of cells on the active evaluation stack."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from gridcalc._utils import Coordinate


class CycleGuard:
    """Tracks coordinates currently being evaluated.

    Use one guard per top-level evaluation request::

        guard = CycleGuard()
        with guard.enter((0, 0)):
            ...  # nested reads check ``coord in guard`` first

    Coordinates passed as *seed* behave as if they were already on the stack
    for the guard's whole lifetime.
    """

    __slots__ = ("_active", "_seed")

    def __init__(self, seed: Iterable[Coordinate] = ()) -> None:
        self._seed: frozenset[Coordinate] = frozenset(seed)
        self._active: set[Coordinate] = set()

    def __contains__(self, coord: object) -> bool:
        return coord in self._active or coord in self._seed

    def __len__(self) -> int:
        return len(self._active | self._seed)

    def push(self, coord: Coordinate) -> None:
        """Mark *coord* as being evaluated.

        Raises RuntimeError if *coord* is already on the stack; callers are
        expected to check membership first.
        """
        if coord in self._active:
            raise RuntimeError(f"Re-entered {coord} while it is being evaluated")
        self._active.add(coord)

    def pop(self, coord: Coordinate) -> None:
        self._active.discard(coord)

    @contextmanager
    def enter(self, coord: Coordinate) -> Iterator[None]:
        """Mark *coord* as being evaluated until the block exits."""
        self.push(coord)
        try:
            yield
        finally:
            self.pop(coord)

    @property
    def active(self) -> frozenset[Coordinate]:
        return frozenset(self._active)
