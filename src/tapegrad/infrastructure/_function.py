"""
Operation catalog.

This module contains the differentiable primitives that can be recorded on the
tape. Each primitive is a `Function` subclass with static `forward(ctx, ...)`
and `backward(ctx, grad_out)` methods:

- `forward` receives the dependency values as `ValueCell`s, saves on `ctx`
  whatever `backward` needs, and returns a new `ValueCell`.
- `backward` receives the gradient of the node's output and returns one
  partial gradient per dependency slot, always as a pair. Unary functions
  return ``(grad_x, None)``.

All numerics go through the tensor-capability interface, so every function
runs unchanged on the NumPy and CuPy backends.

Notes
-----
- No broadcasting: elementwise functions require equal shapes and the storage
  raises `ShapeMismatchError` otherwise.
- `ExpMFn` only supports diagonal inputs; see its docstring.
"""

from typing import Optional, Tuple
import warnings

import numpy as np

from ..domain._errors import DimensionError, ShapeMismatchError
from ..domain._function import Arity, Function
from ..domain._storage import ITensorStorage
from ._context import Context
from ._value_cell import ValueCell

Partials = Tuple[Optional[ValueCell], Optional[ValueCell]]


class AddFn(Function):
    """
    Elementwise addition.

    Implements:

        out = a + b

    Backward:

        grad_a = grad_out
        grad_b = grad_out

    Notes
    -----
    Both slots receive the incoming gradient cell itself. The engine copies a
    partial before accumulating into it, so the shared cell is never mutated.
    """

    arity = Arity.BINARY

    @staticmethod
    def forward(ctx: Context, a: ValueCell, b: ValueCell) -> ValueCell:
        return ValueCell(a.get().add(b.get()))

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        return grad_out, grad_out


class SubFn(Function):
    """
    Elementwise subtraction.

    Implements:

        out = a - b

    Backward:

        grad_a = grad_out
        grad_b = -grad_out
    """

    arity = Arity.BINARY

    @staticmethod
    def forward(ctx: Context, a: ValueCell, b: ValueCell) -> ValueCell:
        return ValueCell(a.get().sub(b.get()))

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        g = grad_out.get()
        return grad_out, ValueCell(g.mul(g.constant_like(-1.0)))


class MulFn(Function):
    """
    Elementwise multiplication.

    Implements:

        out = a * b

    Backward:

        grad_a = b * grad_out
        grad_b = a * grad_out

    Notes
    -----
    Both inputs are saved on the context during forward.
    """

    arity = Arity.BINARY

    @staticmethod
    def forward(ctx: Context, a: ValueCell, b: ValueCell) -> ValueCell:
        out = ValueCell(a.get().mul(b.get()))
        ctx.save_for_backward(a, b)
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        a, b = ctx.saved_values
        g = grad_out.get()
        return ValueCell(b.get().mul(g)), ValueCell(a.get().mul(g))


class DivFn(Function):
    """
    Elementwise true division.

    Implements:

        out = a / b

    Backward:

        grad_a = grad_out / b
        grad_b = -grad_out * a / (b * b)
    """

    arity = Arity.BINARY

    @staticmethod
    def forward(ctx: Context, a: ValueCell, b: ValueCell) -> ValueCell:
        out = ValueCell(a.get().div(b.get()))
        ctx.save_for_backward(a, b)
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        a, b = (cell.get() for cell in ctx.saved_values)
        g = grad_out.get()
        grad_a = g.div(b)
        grad_b = g.mul(a).div(b.mul(b)).mul(g.constant_like(-1.0))
        return ValueCell(grad_a), ValueCell(grad_b)


class MatMulFn(Function):
    """
    Matrix product of two rank-2 operands.

    Implements:

        out = a @ b

    Backward:

        grad_a = grad_out @ b^T
        grad_b = a^T @ grad_out

    Raises
    ------
    DimensionError
        From forward, if either operand is not rank-2.
    ShapeMismatchError
        From forward, if the inner dimensions differ.
    """

    arity = Arity.BINARY

    @staticmethod
    def forward(ctx: Context, a: ValueCell, b: ValueCell) -> ValueCell:
        for cell in (a, b):
            if len(cell.shape) != 2:
                raise DimensionError("matmul", 2, cell.shape)
        out = ValueCell(a.get().matmul(b.get()))
        ctx.save_for_backward(a, b)
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        a, b = (cell.get() for cell in ctx.saved_values)
        g = grad_out.get()
        return ValueCell(g.matmul(b.transpose())), ValueCell(a.transpose().matmul(g))


class TransposeFn(Function):
    """
    Transpose of a rank-2 operand.

    Backward:

        grad_x = grad_out^T
    """

    arity = Arity.UNARY

    @staticmethod
    def forward(ctx: Context, x: ValueCell) -> ValueCell:
        return ValueCell(x.get().transpose())

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        return ValueCell(grad_out.get().transpose()), None


def _has_off_diagonal(value: ITensorStorage) -> bool:
    host = np.asarray(value.to_host())
    return bool(np.any(host[~np.eye(*host.shape, dtype=bool)]))


def _commutator(x: ITensorStorage, y: ITensorStorage) -> ITensorStorage:
    return x.matmul(y).sub(y.matmul(x))


class ExpMFn(Function):
    """
    Matrix exponential of a diagonal square matrix.

    Implements:

        out = I * exp(a)        (elementwise exponential masked to the diagonal)

    which equals ``expm(a)`` when ``a`` is diagonal.

    Backward:

    A truncated power series for the derivative of the exponential map of a
    Lie group. With ``P_1 = g`` and ``P_k = [a, P_{k-1}] = a P_{k-1} - P_{k-1} a``:

        total = g + sum_{k=2..N} (-1)^(k-1) / k! * P_k
        grad_a = out @ total

    i.e. ``out @ sum_{j=0..N-1} (-1)^j / (j+1)! * ad_a^j(g)``. The order ``N``
    is read from ``ctx.saved_meta["series_order"]`` (configured default 6).
    The series is a fixed-order truncation, not an adaptive one.

    Notes
    -----
    Non-diagonal inputs are not supported: the forward output would not be the
    matrix exponential. A `RuntimeWarning` is emitted in that case.
    """

    arity = Arity.UNARY
    DEFAULT_SERIES_ORDER = 6

    @staticmethod
    def forward(ctx: Context, a: ValueCell) -> ValueCell:
        val = a.get()
        if val.ndim != 2:
            raise DimensionError("expm", 2, val.shape)
        n, m = val.shape
        if n != m:
            raise ShapeMismatchError("expm", val.shape)

        if _has_off_diagonal(val):
            # ExpMFn.forward <- Graph.forward <- Tensor.forward <- caller
            warnings.warn(
                "expm only supports diagonal matrices; off-diagonal entries "
                "of the input are ignored by the forward pass.",
                RuntimeWarning,
                stacklevel=4,
            )

        out = ValueCell(val.identity_like().mul(val.exp()))
        ctx.saved_meta.setdefault("series_order", ExpMFn.DEFAULT_SERIES_ORDER)
        ctx.save_for_backward(a, out)
        return out

    @staticmethod
    def backward(ctx: Context, grad_out: ValueCell) -> Partials:
        a_cell, res_cell = ctx.saved_values
        a = a_cell.get()
        order = int(ctx.saved_meta["series_order"])

        g = grad_out.get()
        term = g
        total = g
        factorial = 1
        for k in range(2, order + 1):
            factorial *= k
            sign = -1 if k % 2 == 0 else 1
            term = _commutator(a, term)
            # TODO: scale by a scalar once the capability interface has one,
            # instead of building a constant matrix per term
            total = total.add(term.div(a.constant_like(sign * factorial)))

        return ValueCell(res_cell.get().matmul(total)), None
