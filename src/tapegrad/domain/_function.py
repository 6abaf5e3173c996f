"""
Autograd function interface definitions.

This module defines the abstract base class for differentiable operations
recorded on the tape. Concrete subclasses of `Function` implement both the
forward computation and its corresponding backward gradient computation.

Design
------
- Functions are stateless. Every node of the tape owns a fresh `Context`;
  `forward` stores whatever its `backward` needs on that context. State is
  therefore scoped to exactly one forward/backward pair and is never shared
  across nodes.
- Every function declares its `arity`. The tape rejects applications whose
  operand count does not match instead of misrouting them.
- `backward` always returns a pair, one entry per dependency slot. Unary
  functions return ``(grad_x, None)``. A ``None`` entry means no gradient
  flows to that slot and is treated as zero by the engine.
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, ClassVar, Optional, Tuple


class Arity(IntEnum):
    """
    Number of dependencies of a tape node.

    ``LEAF`` tags nodes created directly from a value; they carry no operation.
    """

    LEAF = 0
    UNARY = 1
    BINARY = 2


class Function(ABC):
    """
    Abstract base class for differentiable operations.

    Subclasses must set `arity` and implement both `forward` and `backward`
    as static methods.

    Notes
    -----
    - Methods are declared as `@staticmethod` to avoid implicit state on the
      function object itself.
    - The `ctx` argument acts as a per-node context, allowing safe reuse of
      `Function` classes across nodes and graphs.
    - Inputs, outputs and gradients are value cells, so saving an input on the
      context shares the very cell that sits in the dependency's value slot.
    """

    arity: ClassVar[Arity]

    @classmethod
    def name(cls) -> str:
        """Return a short, human-readable name derived from the class name."""
        name = cls.__name__
        return name[:-2] if name.endswith("Fn") else name

    @staticmethod
    @abstractmethod
    def forward(ctx, *inputs: Any) -> Any:
        """
        Perform the forward computation.

        Parameters
        ----------
        ctx : Context
            A mutable context object used to store intermediate values
            required for gradient computation.
        *inputs : ValueCell
            Input value(s) of the operation, one per dependency slot.

        Returns
        -------
        ValueCell
            The output value resulting from the forward computation.
        """
        ...

    @staticmethod
    @abstractmethod
    def backward(ctx, grad_out: Any) -> Tuple[Optional[Any], Optional[Any]]:
        """
        Compute the partial gradients with respect to each dependency slot.

        Parameters
        ----------
        ctx : Context
            The context object populated during the forward pass.
        grad_out : ValueCell
            Gradient with respect to the output of this operation.

        Returns
        -------
        tuple[ValueCell | None, ValueCell | None]
            Partial gradients for the first and second dependency slots.
        """
        ...
