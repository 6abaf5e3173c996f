from typing import Any
from dataclasses import dataclass, field

from ._value_cell import ValueCell


@dataclass
class Context:
    """
    Backward context owned by one tape node.

    A `Context` records the information an operation's backward needs. Each
    node receives a fresh context when it is appended to the graph, so state
    is never shared between nodes.

    Attributes
    ----------
    saved_values : list[ValueCell]
        Value cells explicitly saved during the forward pass. They are shared
        with the graph slots they came from, not copied.
    saved_meta : dict[str, Any]
        Non-tensor metadata required for backward (e.g., series order).
    """

    saved_values: list[ValueCell] = field(default_factory=list)
    saved_meta: dict[str, Any] = field(default_factory=dict)

    def save_for_backward(self, *values: ValueCell) -> None:
        """
        Save value cells for use during the backward computation.

        Parameters
        ----------
        *values : ValueCell
            Any number of cells to be stored in `saved_values`.
        """
        self.saved_values.extend(values)

    def clear_saved(self) -> None:
        """Drop the values saved by a previous forward call; `saved_meta` is kept."""
        self.saved_values.clear()
