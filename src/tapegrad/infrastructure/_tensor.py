"""
Tensor handles.

A `Tensor` is a lightweight reference into a `Graph`: the graph plus a node
index. It carries no data. All arithmetic on handles appends new nodes to the
owning graph and returns a handle to the new node; nothing is evaluated until
`forward` is called.

Several handles may refer to the same node. Reusing a handle as an operand of
several operations is the expected way to build expressions whose gradients
accumulate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from ..domain._storage import ITensorStorage
from ._function import AddFn, DivFn, ExpMFn, MatMulFn, MulFn, SubFn, TransposeFn

if TYPE_CHECKING:
    from ._graph import Graph


class Tensor:
    """
    Handle to one node of a graph.

    Parameters
    ----------
    graph : Graph
        The owning graph.
    index : int
        Position of the node in `graph`.

    Notes
    -----
    Handles are immutable and cheap to copy. Equality is identity of the
    graph plus equality of the index; the arithmetic operators never compare
    values.
    """

    __slots__ = ("_graph", "_index")

    def __init__(self, graph: "Graph", index: int) -> None:
        self._graph = graph
        self._index = int(index)

    @property
    def graph(self) -> "Graph":
        return self._graph

    @property
    def index(self) -> int:
        return self._index

    def same_graph(self, other: "Tensor") -> bool:
        """Return True if `other` refers to the same graph object."""
        return isinstance(other, Tensor) and other._graph is self._graph

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tensor):
            return NotImplemented
        return self.same_graph(other) and self._index == other._index

    def __hash__(self) -> int:
        return hash((id(self._graph), self._index))

    def __repr__(self) -> str:
        node = self._graph.node(self._index)
        op = "leaf" if node.is_leaf else node.operation.name
        state = "computed" if node.value is not None else "pending"
        return f"Tensor(index={self._index}, op={op}, deps={node.deps}, {state})"

    # ------------------------------------------------------------------
    # Operator helpers
    # ------------------------------------------------------------------
    def _binary(self, fn, other: Any) -> "Tensor":
        if not isinstance(other, Tensor):
            raise TypeError(
                f"{fn.name()} expects a Tensor operand, got {type(other)!r}"
            )
        return self._graph.apply(fn, self, other)

    # ------------------------------------------------------------------
    # Elementwise arithmetic
    # ------------------------------------------------------------------
    def __add__(self, other: "Tensor") -> "Tensor":
        """
        Record elementwise addition.

        Backward rule:
        - ``d(a + b) / da = 1``
        - ``d(a + b) / db = 1``
        """
        return self._binary(AddFn, other)

    def __sub__(self, other: "Tensor") -> "Tensor":
        """
        Record elementwise subtraction.

        Backward rule:
        - ``d(a - b) / da = 1``
        - ``d(a - b) / db = -1``
        """
        return self._binary(SubFn, other)

    def __mul__(self, other: "Tensor") -> "Tensor":
        """
        Record elementwise multiplication.

        Backward rule:
        - ``d(a * b) / da = b``
        - ``d(a * b) / db = a``
        """
        return self._binary(MulFn, other)

    def __truediv__(self, other: "Tensor") -> "Tensor":
        """
        Record elementwise true division.

        Backward rule:
        - ``d(a / b) / da = 1 / b``
        - ``d(a / b) / db = -a / (b^2)``
        """
        return self._binary(DivFn, other)

    # ------------------------------------------------------------------
    # Linear algebra
    # ------------------------------------------------------------------
    def matmul(self, other: "Tensor") -> "Tensor":
        """
        Record a matrix product of two rank-2 tensors.

        The rank is checked by forward, which raises `DimensionError`.
        """
        return self._binary(MatMulFn, other)

    def __matmul__(self, other: "Tensor") -> "Tensor":
        return self.matmul(other)

    def t(self) -> "Tensor":
        """Record the transpose of a rank-2 tensor."""
        return self._graph.apply(TransposeFn, self)

    @property
    def T(self) -> "Tensor":
        return self.t()

    def expm(self, series_order: Optional[int] = None) -> "Tensor":
        """
        Record the matrix exponential of a diagonal square tensor.

        Parameters
        ----------
        series_order : Optional[int]
            Truncation order of the backward series. Defaults to the graph's
            configured `expm_series_order`.
        """
        order = self._graph.config.expm_series_order if series_order is None else int(series_order)
        if order < 1:
            raise ValueError(f"series_order must be >= 1, got {order}")
        return self._graph.apply(ExpMFn, self, series_order=order)

    # ------------------------------------------------------------------
    # Traversals
    # ------------------------------------------------------------------
    def forward(self) -> None:
        """Evaluate the graph up to and including this tensor."""
        self._graph.forward(self._index)

    def backward(self, seed: Optional[ITensorStorage] = None) -> None:
        """
        Backpropagate from this tensor.

        Parameters
        ----------
        seed : Optional[ITensorStorage]
            Gradient with respect to this tensor. Defaults to ones.
        """
        self._graph.backward(self._index, seed)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def value(self) -> Any:
        """
        Return a host copy of this tensor's value.

        Raises
        ------
        NotComputedError
            If forward has not reached this tensor.
        """
        return self._graph.value_of(self._index)

    def grad(self) -> Any:
        """
        Return a host copy of this tensor's gradient.

        Raises
        ------
        NotComputedError
            If no backward pass has covered this tensor.
        """
        return self._graph.grad_of(self._index)

    @property
    def shape(self) -> tuple[int, ...]:
        """Shape of the computed value."""
        return self._graph.value_cell(self._index).shape
