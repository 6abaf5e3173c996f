"""
Exception taxonomy for tapegrad.

This module defines the errors raised by the tape engine, the operation
catalog, and the storage backends. The classes are deliberately fine-grained
so that callers can tell a benign "not yet computed" condition apart from a
genuine programming error (shape misuse, cross-graph composition, arity
misuse, backend mismatch).

Hierarchy
---------
- ``TapeGradError``
    - ``UsageError``
        - ``NotComputedError``
        - ``GraphMismatchError``
    - ``ShapeError``
        - ``ShapeMismatchError``
        - ``DimensionError``
    - ``UnsupportedOperationError``
    - ``DeviceNotSupportedError``
    - ``DeviceMismatchError``

Each concrete class also derives from the closest builtin exception
(``RuntimeError``, ``ValueError``, ``TypeError``) so that generic handlers keep
working.
"""

from typing import Optional, Sequence


class TapeGradError(Exception):
    """Base class of every error raised by tapegrad."""


class UsageError(TapeGradError, RuntimeError):
    """
    Raised when the public API is used in a way the engine cannot honor.

    Usage errors are not recoverable by the engine. They abort the offending
    call only; the graph stays valid.
    """


class NotComputedError(UsageError):
    """
    Raised when a value or gradient is read before the pass producing it ran.

    Attributes
    ----------
    index : int
        Index of the node whose slot was read.
    slot : str
        Name of the missing slot, ``"value"`` or ``"gradient"``.
    """

    def __init__(self, index: int, slot: str) -> None:
        """
        Initialize the NotComputedError.

        Parameters
        ----------
        index : int
            Index of the node whose slot is absent.
        slot : str
            Either ``"value"`` (forward has not reached the node) or
            ``"gradient"`` (backward has not reached the node).
        """
        pass_name = "forward" if slot == "value" else "backward"
        super().__init__(
            f"{slot} of node {index} is not computed; run {pass_name}() first."
        )
        self.index = index
        self.slot = slot


class GraphMismatchError(UsageError):
    """
    Raised when tensors from different graphs are combined in one operation.
    """

    def __init__(self, op: str) -> None:
        super().__init__(f"{op}: operands belong to different graphs.")
        self.op = op


class ShapeError(TapeGradError, ValueError):
    """Base class for operand shape and rank errors."""


class ShapeMismatchError(ShapeError):
    """
    Raised when operand shapes are incompatible.

    Attributes
    ----------
    op : str
        The operation name (e.g., "add", "matmul").
    shapes : tuple[tuple[int, ...], ...]
        The offending operand shapes.
    """

    def __init__(self, op: str, *shapes: Sequence[int]) -> None:
        self.op = op
        self.shapes = tuple(tuple(s) for s in shapes)
        rendered = " vs ".join(str(s) for s in self.shapes)
        super().__init__(f"{op}: shape mismatch {rendered}.")


class DimensionError(ShapeError):
    """
    Raised when an operand does not have the rank an operation requires.

    Attributes
    ----------
    op : str
        The operation name.
    expected : int
        The required rank.
    shape : tuple[int, ...]
        The shape that was received.
    """

    def __init__(self, op: str, expected: int, shape: Sequence[int]) -> None:
        self.op = op
        self.expected = expected
        self.shape = tuple(shape)
        super().__init__(
            f"{op} requires rank-{expected} operands, got shape {self.shape}."
        )


class UnsupportedOperationError(TapeGradError, TypeError):
    """
    Raised when an operation is invoked with an arity it does not support.

    For example, applying a unary function to two operands. The call is
    rejected instead of being silently misrouted.
    """

    def __init__(self, op: str, expected: int, got: int) -> None:
        super().__init__(f"{op} expects {expected} operand(s), got {got}.")
        self.op = op
        self.expected = expected
        self.got = got


class DeviceNotSupportedError(TapeGradError, RuntimeError):
    """
    Raised when a storage backend is requested on a device it cannot serve.

    Typically raised by the CUDA backend when CuPy is not installed or no CUDA
    device is visible.

    Attributes
    ----------
    op : str
        The name of the operation that was attempted.
    device : str
        String representation of the requested device.
    reason : Optional[str]
        Optional detail describing why the device is unavailable.
    """

    def __init__(self, op: str, device: str, reason: Optional[str] = None) -> None:
        message = f"{op} is not implemented for device '{device}'."
        if reason:
            message = f"{message} Reason: {reason}"
        super().__init__(message)
        self.op = op
        self.device = device
        self.reason = reason


class DeviceMismatchError(TapeGradError, RuntimeError):
    """
    Raised when values from different backends or devices are mixed.

    A graph is bound to one storage type and one device; combining storages
    across that boundary without an explicit transfer is rejected.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b
