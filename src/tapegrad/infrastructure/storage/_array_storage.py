"""
Shared implementation of array-module backed storages.

NumPy and CuPy expose nearly identical array APIs. `ArrayStorage` implements
the tensor-capability interface once in terms of an array module (``xp``);
the host and CUDA backends only provide the module, the device scope and the
host transfer.

Notes
-----
- Storages are immutable. Every operation allocates its result.
- Elementwise operations require exact shape equality; there is no
  broadcasting.
- Operands must be of the same storage class and on the same device.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
import numbers
from typing import Any, Callable, Union

from typing_extensions import Self

from ...domain._errors import (
    DeviceMismatchError,
    DimensionError,
    ShapeMismatchError,
)
from ...domain.device._device import Device

Number = Union[int, float]


class ArrayStorage(ABC):
    """
    Base class for storages backed by a NumPy-compatible array module.

    Parameters
    ----------
    data : array
        Backend-native array. Ownership passes to the storage; callers must not
        mutate it afterwards.
    device : Device
        Device on which `data` resides.
    """

    __slots__ = ("_data", "_device")

    def __init__(self, data: Any, device: Device) -> None:
        self._data = data
        self._device = device

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------
    @classmethod
    @abstractmethod
    def _xp(cls) -> Any:
        """Return the array module (``numpy`` or ``cupy``)."""
        ...

    @abstractmethod
    def _device_scope(self) -> AbstractContextManager:
        """Return a context manager that makes this storage's device current."""
        ...

    @abstractmethod
    def to_host(self) -> Any:
        """Return a NumPy copy of the elements."""
        ...

    def _wrap(self, data: Any) -> Self:
        return type(self)(data, self._device)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    @property
    def data(self) -> Any:
        """Backend-native array. Treat as read-only."""
        return self._data

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(int(s) for s in self._data.shape)

    @property
    def ndim(self) -> int:
        return int(self._data.ndim)

    @property
    def dtype(self) -> Any:
        return self._data.dtype

    @property
    def device(self) -> Device:
        return self._device

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(shape={self.shape}, dtype={self.dtype}, "
            f"device={self._device})"
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def _check_compatible(self, other: Any) -> None:
        if type(other) is not type(self):
            raise DeviceMismatchError(
                f"{type(self).__name__}@{self.device}",
                f"{type(other).__name__}@{getattr(other, 'device', '?')}",
            )
        if other.device != self.device:
            raise DeviceMismatchError(str(self.device), str(other.device))

    def _require_rank2(self, op: str) -> None:
        if self.ndim != 2:
            raise DimensionError(op, 2, self.shape)

    def _elementwise(self, op: str, other: Self, kernel: Callable) -> Self:
        self._check_compatible(other)
        if self.shape != other.shape:
            raise ShapeMismatchError(op, self.shape, other.shape)
        with self._device_scope():
            return self._wrap(kernel(self._data, other._data))

    # ------------------------------------------------------------------
    # Elementwise arithmetic
    # ------------------------------------------------------------------
    def add(self, other: Self) -> Self:
        return self._elementwise("add", other, self._xp().add)

    def sub(self, other: Self) -> Self:
        return self._elementwise("sub", other, self._xp().subtract)

    def mul(self, other: Self) -> Self:
        return self._elementwise("mul", other, self._xp().multiply)

    def div(self, other: Self) -> Self:
        return self._elementwise("div", other, self._xp().true_divide)

    # ------------------------------------------------------------------
    # Linear algebra
    # ------------------------------------------------------------------
    def matmul(self, other: Self) -> Self:
        """
        Matrix product (2D): out = self @ other.

        If ``self`` is (n, k) and ``other`` is (k, m) the result is (n, m).
        """
        self._check_compatible(other)
        self._require_rank2("matmul")
        other._require_rank2("matmul")

        n, k1 = self.shape
        k2, m = other.shape
        if k1 != k2:
            raise ShapeMismatchError("matmul", self.shape, other.shape)

        with self._device_scope():
            return self._wrap(self._xp().matmul(self._data, other._data))

    def transpose(self) -> Self:
        self._require_rank2("transpose")
        with self._device_scope():
            return self._wrap(self._xp().ascontiguousarray(self._data.T))

    # ------------------------------------------------------------------
    # Elementwise maps
    # ------------------------------------------------------------------
    def exp(self) -> Self:
        with self._device_scope():
            return self._wrap(self._xp().exp(self._data))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    def identity_like(self) -> Self:
        self._require_rank2("identity_like")
        n, m = self.shape
        with self._device_scope():
            return self._wrap(self._xp().eye(n, m, dtype=self.dtype))

    def ones_like(self) -> Self:
        with self._device_scope():
            return self._wrap(self._xp().ones_like(self._data))

    def constant_like(self, value: Number) -> Self:
        if not isinstance(value, numbers.Real):
            raise TypeError(f"constant_like expects a scalar, got {type(value)!r}")
        with self._device_scope():
            return self._wrap(self._xp().full_like(self._data, float(value)))

