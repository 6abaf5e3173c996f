"""
The computation graph (Wengert list).

`Graph` is an append-only, index-addressed list of `Node`s and the only
authority for creating nodes and for running traversals:

- Leaves are appended by `create_leaf`; derived nodes by `apply`, which is what
  the `Tensor` operators call. Appending never evaluates anything.
- `forward(target)` evaluates nodes ``0..target`` in increasing index order.
- `backward(target, seed)` propagates gradients over ``target..0`` in
  decreasing index order.

Because an operation can only reference handles that already exist, every
dependency index is smaller than the index of the node using it. Creation
order is therefore a topological order and neither traversal sorts.

Concurrency
-----------
Graph construction and traversal are single-threaded by design. All public
methods hold one re-entrant lock for their whole duration, so appends,
traversals and reads never interleave. Concurrent forward calls over
overlapping ranges are serialized, not coordinated.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional, Sequence, Tuple, Type

from ..domain._errors import (
    DeviceMismatchError,
    GraphMismatchError,
    NotComputedError,
    ShapeMismatchError,
    UnsupportedOperationError,
)
from ..domain._function import Arity, Function
from ..domain._storage import ITensorStorage
from ._config import TapeGradConfig, get_config
from ._context import Context
from ._node import Node, Operation
from ._tensor import Tensor
from ._value_cell import ValueCell

logger = logging.getLogger(__name__)


class Graph:
    """
    Append-only tape of recorded operations.

    Parameters
    ----------
    config : Optional[TapeGradConfig]
        Engine configuration. Defaults to the process-wide configuration at
        construction time.

    Notes
    -----
    A graph is bound to one storage type and one device, fixed by its first
    leaf. Every handle derived from the graph refers back to it, so the graph
    outlives its handles.

    Examples
    --------
    >>> g = Graph()
    >>> x = g.create_leaf(NumpyStorage.from_numpy([1.0, 2.0]))
    >>> y = g.create_leaf(NumpyStorage.from_numpy([3.0, 4.0]))
    >>> z = x + y
    >>> z.forward()
    >>> z.value()
    array([4., 6.], dtype=float32)
    """

    def __init__(self, config: Optional[TapeGradConfig] = None) -> None:
        self._nodes: list[Node] = []
        self._lock = threading.RLock()
        self._config = config if config is not None else get_config()
        self._storage_type: Optional[type] = None
        self._device: Any = None
        self._backward_target: Optional[int] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def config(self) -> TapeGradConfig:
        return self._config

    @property
    def device(self) -> Any:
        """Device of the graph's values, or None before the first leaf."""
        return self._device

    def size(self) -> int:
        """Return the number of nodes; also the index of the next append."""
        with self._lock:
            return len(self._nodes)

    def __len__(self) -> int:
        return self.size()

    def node(self, index: int) -> Node:
        """Return the node at `index` (for inspection; do not mutate)."""
        with self._lock:
            self._check_index(index)
            return self._nodes[index]

    def __repr__(self) -> str:
        with self._lock:
            deps = ", ".join(str(n.deps) for n in self._nodes)
        return f"Graph([{deps}])"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def create_leaf(self, value: ITensorStorage) -> Tensor:
        """
        Append a leaf node holding `value` and return a handle to it.

        Parameters
        ----------
        value : ITensorStorage
            An already materialized storage. A `ValueCell` is unwrapped.

        Raises
        ------
        TypeError
            If `value` is not a tensor storage.
        DeviceMismatchError
            If `value` uses another backend or device than earlier leaves.
        """
        if isinstance(value, ValueCell):
            value = value.get()
        if not isinstance(value, ITensorStorage):
            raise TypeError(f"create_leaf expects a tensor storage, got {type(value)!r}")

        with self._lock:
            self._check_backend(value)
            index = self._append((), None, value=ValueCell(value))
        return Tensor(self, index)

    tensor = create_leaf

    def apply(self, fn: Type[Function], *operands: Tensor, **meta: Any) -> Tensor:
        """
        Record `fn` applied to `operands` and return a handle to the new node.

        Nothing is evaluated; the new node receives its value on the next
        `forward` call reaching it.

        Parameters
        ----------
        fn : Type[Function]
            Catalog entry to record.
        *operands : Tensor
            One handle per dependency slot of `fn`.
        **meta
            Extra entries placed in the node's fresh `Context.saved_meta`.

        Raises
        ------
        TypeError
            If an operand is not a `Tensor`.
        GraphMismatchError
            If an operand belongs to another graph.
        UnsupportedOperationError
            If the operand count does not match `fn.arity`.
        """
        for operand in operands:
            if not isinstance(operand, Tensor):
                raise TypeError(f"{fn.name()} expects Tensor operands, got {type(operand)!r}")
            if operand.graph is not self:
                raise GraphMismatchError(fn.name())

        if len(operands) != int(fn.arity):
            raise UnsupportedOperationError(fn.name(), int(fn.arity), len(operands))

        operation = Operation(fn, Context(saved_meta=dict(meta)))
        with self._lock:
            index = self._append(tuple(op.index for op in operands), operation)
        return Tensor(self, index)

    def _append(
        self,
        deps: Tuple[int, ...],
        operation: Optional[Operation],
        *,
        value: Optional[ValueCell] = None,
    ) -> int:
        """Append a node at the current length and return its index."""
        with self._lock:
            index = len(self._nodes)
            arity = Arity.LEAF if operation is None else operation.arity
            if len(deps) != int(arity):
                name = "leaf" if operation is None else operation.name
                raise UnsupportedOperationError(name, int(arity), len(deps))
            for dep in deps:
                if not 0 <= dep < index:
                    raise IndexError(
                        f"dependency {dep} of node {index} does not reference an earlier node"
                    )
            self._nodes.append(Node(deps=tuple(deps), operation=operation, value=value))
            return index

    def _check_backend(self, storage: ITensorStorage) -> None:
        if self._storage_type is None:
            self._storage_type = type(storage)
            self._device = storage.device
            return
        if type(storage) is not self._storage_type:
            raise DeviceMismatchError(
                f"{self._storage_type.__name__}@{self._device}",
                f"{type(storage).__name__}@{storage.device}",
            )
        if storage.device != self._device:
            raise DeviceMismatchError(str(self._device), str(storage.device))

    def _check_index(self, index: int) -> None:
        if not isinstance(index, int) or not 0 <= index < len(self._nodes):
            raise IndexError(f"node index {index!r} out of range for graph of size {len(self._nodes)}")

    # ------------------------------------------------------------------
    # Traversals
    # ------------------------------------------------------------------
    def forward(self, target: int) -> None:
        """
        Evaluate every node with index ``<= target``, in increasing order.

        Leaves and nodes computed by an earlier call are skipped, so repeated
        calls are idempotent. A node's value is stored only after its function
        returned; a failing node keeps no value.

        Raises
        ------
        IndexError
            If `target` is out of range.
        NotComputedError
            If a dependency has no value.
        ShapeError
            Propagated from the failing operation.
        """
        with self._lock:
            self._check_index(target)
            evaluated = 0
            for i in range(target + 1):
                node = self._nodes[i]
                if node.value is not None:
                    continue

                inputs = []
                for dep in node.deps:
                    dep_value = self._nodes[dep].value
                    if dep_value is None:
                        raise NotComputedError(dep, "value")
                    inputs.append(dep_value)

                op = node.operation
                op.ctx.clear_saved()
                out = op.fn.forward(op.ctx, *inputs)
                if not isinstance(out, ValueCell):
                    raise TypeError(
                        f"{op.name}.forward must return a ValueCell, got {type(out)!r}"
                    )
                node.value = out
                evaluated += 1

            logger.debug("forward: evaluated %d node(s) up to index %d", evaluated, target)

    def backward(self, target: int, seed: Optional[ITensorStorage] = None) -> None:
        """
        Propagate gradients from node `target` to all of its dependencies.

        Gradients from a previous backward call are cleared first, so
        repeating the call yields the same result. Nodes with index
        ``<= target`` that receive no gradient read as zero afterwards. If
        propagation fails, every gradient is cleared before the error is
        re-raised, so no node is left with a partially accumulated gradient.

        Parameters
        ----------
        target : int
            Index of the node to differentiate.
        seed : Optional[ITensorStorage]
            Gradient of the target. Defaults to ones shaped like its value.

        Raises
        ------
        NotComputedError
            If forward has not produced the target's value.
        ShapeMismatchError
            If `seed` or a partial gradient has the wrong shape.
        DeviceMismatchError
            If `seed` uses another backend or device than the graph.
        """
        with self._lock:
            self._check_index(target)
            target_node = self._nodes[target]
            if target_node.value is None:
                raise NotComputedError(target, "value")

            seed_cell = self._make_seed(target_node, seed)

            for node in self._nodes:
                node.clear_gradient()
            self._backward_target = None
            target_node.gradient = seed_cell

            try:
                visited = self._propagate(target)
            except Exception:
                for node in self._nodes:
                    node.clear_gradient()
                raise

            self._backward_target = target
            logger.debug("backward: propagated through %d node(s) from index %d", visited, target)

    def _propagate(self, target: int) -> int:
        """Run the reverse sweep over ``target..0``; return the number of nodes visited."""
        visited = 0
        for i in range(target, -1, -1):
            node = self._nodes[i]
            if node.is_leaf or node.gradient is None:
                continue
            if node.value is None:
                raise NotComputedError(i, "value")

            op = node.operation
            partials = self._normalize_partials(op, op.fn.backward(op.ctx, node.gradient))
            node.partials = partials
            visited += 1

            for slot, dep in enumerate(node.deps):
                partial = partials[slot]
                if partial is None:
                    continue
                dep_node = self._nodes[dep]
                if partial.shape != dep_node.value.shape:
                    raise ShapeMismatchError(
                        f"{op.name}.backward", dep_node.value.shape, partial.shape
                    )
                if dep_node.gradient is None:
                    dep_node.gradient = partial.copy()
                else:
                    dep_node.gradient.accumulate_(partial)
        return visited

    def _make_seed(self, node: Node, seed: Optional[ITensorStorage]) -> ValueCell:
        if seed is None:
            return ValueCell(node.value.get().ones_like())
        if isinstance(seed, ValueCell):
            seed = seed.get()
        if not isinstance(seed, ITensorStorage):
            raise TypeError(f"backward seed must be a tensor storage, got {type(seed)!r}")
        self._check_backend(seed)
        if seed.shape != node.value.shape:
            raise ShapeMismatchError("backward seed", node.value.shape, seed.shape)
        return ValueCell(seed)

    @staticmethod
    def _normalize_partials(
        op: Operation, partials: Sequence[Optional[ValueCell]]
    ) -> Tuple[Optional[ValueCell], Optional[ValueCell]]:
        partials = tuple(partials)
        if len(partials) != 2:
            raise RuntimeError(
                f"{op.name}.backward must return 2 partials, got {len(partials)}"
            )
        for p in partials:
            if p is not None and not isinstance(p, ValueCell):
                raise TypeError(
                    f"{op.name}.backward must return ValueCell or None, got {type(p)!r}"
                )
        return partials[0], partials[1]

    def zero_grad(self) -> None:
        """Clear gradients and partials of every node."""
        with self._lock:
            for node in self._nodes:
                node.clear_gradient()
            self._backward_target = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def value_cell(self, index: int) -> ValueCell:
        """Return the value cell of node `index` (backend-native access)."""
        with self._lock:
            self._check_index(index)
            cell = self._nodes[index].value
            if cell is None:
                raise NotComputedError(index, "value")
            return cell

    def grad_cell(self, index: int) -> ValueCell:
        """
        Return the gradient cell of node `index` (backend-native access).

        A node covered by the last backward pass but not reachable from its
        target has a zero gradient.
        """
        with self._lock:
            self._check_index(index)
            node = self._nodes[index]
            if node.gradient is not None:
                return node.gradient
            covered = self._backward_target is not None and index <= self._backward_target
            if covered and node.value is not None:
                return ValueCell(node.value.get().constant_like(0.0))
            raise NotComputedError(index, "gradient")

    def value_of(self, index: int) -> Any:
        """Return a host (NumPy) copy of node `index`'s value."""
        return self.value_cell(index).to_host()

    def grad_of(self, index: int) -> Any:
        """Return a host (NumPy) copy of node `index`'s gradient."""
        return self.grad_cell(index).to_host()
