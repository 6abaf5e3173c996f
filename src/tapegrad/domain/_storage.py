"""
Tensor-capability interface definitions.

This module defines the domain-level contract every element-storage backend
must satisfy for the tape engine to run on it. The engine never inspects how a
storage keeps its elements; it only calls the operations declared here.

Notes
-----
- Structural typing (`typing.Protocol`) is used so that the NumPy host backend
  and the CuPy accelerator backend satisfy the same contract without sharing a
  base class with the engine.
- Storages are treated as immutable values. Every operation returns a new
  storage and never writes into its operands; the engine relies on this when
  the same storage is shared by several graph slots.
- Binary operations require both operands to be of the same storage type and
  on the same device.
"""

from __future__ import annotations

from typing import Any, Union, Protocol, runtime_checkable

from typing_extensions import Self

from .device._device_protocol import DeviceLike

Number = Union[int, float]


@runtime_checkable
class ITensorStorage(Protocol):
    """
    Capability interface for tensor storage backends.

    Concrete implementations include the NumPy-backed host storage and the
    CuPy-backed CUDA storage.
    """

    # ---------------------------------------------------------------------
    # Metadata
    # ---------------------------------------------------------------------
    @property
    def shape(self) -> tuple[int, ...]:
        """
        Return the shape of the stored array.

        Returns
        -------
        tuple[int, ...]
            The storage's shape.
        """
        ...

    @property
    def ndim(self) -> int:
        """Return the rank of the stored array."""
        ...

    @property
    def dtype(self) -> Any:
        """Return the element dtype of the stored array."""
        ...

    @property
    def device(self) -> DeviceLike:
        """
        Return the device on which the elements reside.

        Returns
        -------
        DeviceLike
            The storage's device placement descriptor.
        """
        ...

    # ---------------------------------------------------------------------
    # Elementwise arithmetic
    # ---------------------------------------------------------------------
    def add(self, other: Self) -> Self:
        """
        Elementwise addition.

        Raises
        ------
        ShapeMismatchError
            If ``self.shape != other.shape``.
        DeviceMismatchError
            If the operands use different backends or devices.
        """
        ...

    def sub(self, other: Self) -> Self:
        """Elementwise subtraction (same contract as :meth:`add`)."""
        ...

    def mul(self, other: Self) -> Self:
        """Elementwise multiplication (same contract as :meth:`add`)."""
        ...

    def div(self, other: Self) -> Self:
        """Elementwise true division (same contract as :meth:`add`)."""
        ...

    # ---------------------------------------------------------------------
    # Linear algebra
    # ---------------------------------------------------------------------
    def matmul(self, other: Self) -> Self:
        """
        Matrix product of two rank-2 storages.

        Raises
        ------
        DimensionError
            If either operand is not rank-2.
        ShapeMismatchError
            If the inner dimensions do not agree.
        """
        ...

    def transpose(self) -> Self:
        """
        Transpose of a rank-2 storage.

        Raises
        ------
        DimensionError
            If the storage is not rank-2.
        """
        ...

    # ---------------------------------------------------------------------
    # Elementwise maps
    # ---------------------------------------------------------------------
    def exp(self) -> Self:
        """Elementwise exponential."""
        ...

    # ---------------------------------------------------------------------
    # Shape-preserving constructors
    # ---------------------------------------------------------------------
    def identity_like(self) -> Self:
        """
        Return a rank-2 storage of the same shape with ones on the main diagonal.

        Raises
        ------
        DimensionError
            If the storage is not rank-2.
        """
        ...

    def ones_like(self) -> Self:
        """Return an all-ones storage of the same shape, dtype and device."""
        ...

    def constant_like(self, value: Number) -> Self:
        """Return a storage of the same shape filled with ``value``."""
        ...

    # ---------------------------------------------------------------------
    # Host interop
    # ---------------------------------------------------------------------
    def to_host(self) -> Any:
        """
        Materialize a backend-independent copy of the elements.

        Returns
        -------
        numpy.ndarray
            A host array that does not alias the storage's memory.
        """
        ...
