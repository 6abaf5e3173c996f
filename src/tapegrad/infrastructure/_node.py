"""
Tape node records.

A `Node` is one entry of the Wengert list. Nodes are created and owned by a
`Graph` and addressed by their position in it.

Leaves are tagged explicitly: a leaf has no dependencies and no operation.
Every other node references one (unary) or two (binary) strictly earlier
indices, so creation order is a valid topological order.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Type

from ..domain._function import Arity, Function
from ._context import Context
from ._value_cell import ValueCell


@dataclass
class Operation:
    """
    The operation producing a non-leaf node.

    Attributes
    ----------
    fn : Type[Function]
        The catalog entry. Its `arity` tags the operation as unary or binary.
    ctx : Context
        State saved by `fn.forward` for `fn.backward`. Owned by this node only.
    """

    fn: Type[Function]
    ctx: Context = field(default_factory=Context)

    @property
    def arity(self) -> Arity:
        return self.fn.arity

    @property
    def name(self) -> str:
        return self.fn.name()


@dataclass
class Node:
    """
    One entry of the tape.

    Attributes
    ----------
    deps : Tuple[int, ...]
        Indices of the nodes this node is computed from (empty for leaves).
    operation : Optional[Operation]
        The producing operation, or None for a leaf.
    value : Optional[ValueCell]
        Forward value. Leaves receive it at creation; other nodes once forward
        reaches them. Written once.
    gradient : Optional[ValueCell]
        Accumulated gradient. None means no gradient reached this node during
        the last backward pass.
    partials : Tuple[Optional[ValueCell], Optional[ValueCell]]
        Per-dependency partial gradients produced by this node's backward.
    """

    deps: Tuple[int, ...] = ()
    operation: Optional[Operation] = None
    value: Optional[ValueCell] = None
    gradient: Optional[ValueCell] = None
    partials: Tuple[Optional[ValueCell], Optional[ValueCell]] = (None, None)

    @property
    def is_leaf(self) -> bool:
        return self.operation is None

    @property
    def arity(self) -> Arity:
        return Arity.LEAF if self.operation is None else self.operation.arity

    def clear_gradient(self) -> None:
        self.gradient = None
        self.partials = (None, None)

    def __repr__(self) -> str:
        op = "leaf" if self.operation is None else self.operation.name
        return f"Node(op={op}, deps={self.deps})"
