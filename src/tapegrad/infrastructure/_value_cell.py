"""
Shared value container used by graph nodes and backward contexts.

A `ValueCell` holds exactly one storage value. The same cell object may be
referenced from several places at once: a node's ``value`` slot and the
context of every operation that saved it, or two partial-gradient slots of
one node (``AddFn`` returns the incoming gradient for both operands).

Sharing is safe because storages are immutable. The only in-place mutation is
`accumulate_`, which rebinds the cell's content and is used exclusively on
gradient cells owned by a node; the engine copies a partial into a fresh cell
before it ever accumulates into it.
"""

from __future__ import annotations

from typing import Any

from ..domain._errors import ShapeMismatchError
from ..domain._storage import ITensorStorage


class ValueCell:
    """
    Reference-shared holder of one tensor storage.

    Parameters
    ----------
    value : ITensorStorage
        The storage to hold.

    Raises
    ------
    TypeError
        If `value` does not satisfy the capability interface.
    """

    __slots__ = ("_value",)

    def __init__(self, value: ITensorStorage) -> None:
        if isinstance(value, ValueCell):
            value = value.get()
        if not isinstance(value, ITensorStorage):
            raise TypeError(
                f"ValueCell expects a tensor storage, got {type(value)!r}"
            )
        self._value = value

    def get(self) -> ITensorStorage:
        """Return the held storage."""
        return self._value

    @property
    def shape(self) -> tuple[int, ...]:
        return self._value.shape

    @property
    def device(self) -> Any:
        return self._value.device

    def copy(self) -> "ValueCell":
        """Return an independent cell holding the same (immutable) storage."""
        return ValueCell(self._value)

    def accumulate_(self, other: "ValueCell") -> None:
        """
        Add `other` into this cell in place.

        Every holder of this cell observes the new content.

        Raises
        ------
        ShapeMismatchError
            If the shapes differ.
        """
        if other.shape != self.shape:
            raise ShapeMismatchError("accumulate", self.shape, other.shape)
        self._value = self._value.add(other.get())

    def to_host(self) -> Any:
        """Return a NumPy copy of the held value."""
        return self._value.to_host()

    def __repr__(self) -> str:
        return f"ValueCell({self._value!r})"
