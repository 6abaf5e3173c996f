"""
Host (CPU) storage backend backed by NumPy.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any, Optional

import numpy as np

from ...domain.device._device import Device
from .._config import get_config
from ._array_storage import ArrayStorage

_CPU = Device("cpu")


class NumpyStorage(ArrayStorage):
    """
    Tensor storage holding a `numpy.ndarray` in host memory.

    Parameters
    ----------
    data : np.ndarray
        The array to wrap. It is not copied; use `from_numpy` to copy and
        cast user input.
    device : Optional[Device]
        Must be ``Device("cpu")`` if given.

    Raises
    ------
    TypeError
        If `data` is not a NumPy array.
    ValueError
        If `device` is not the CPU.
    """

    __slots__ = ()

    def __init__(self, data: np.ndarray, device: Optional[Device] = None) -> None:
        if not isinstance(data, np.ndarray):
            raise TypeError(f"NumpyStorage expects np.ndarray, got {type(data)!r}")
        if device is not None and not device.is_cpu():
            raise ValueError(f"NumpyStorage lives on cpu, got device {device}")
        super().__init__(data, _CPU)

    @classmethod
    def _xp(cls) -> Any:
        return np

    def _device_scope(self):
        return nullcontext()

    @classmethod
    def from_numpy(cls, arr: Any, *, dtype: Any = None) -> "NumpyStorage":
        """
        Build a host storage from any array-like by copying it.

        Parameters
        ----------
        arr : array_like
            Nested lists, scalars or arrays.
        dtype : optional
            Target dtype. Defaults to the configured `default_dtype`.
        """
        dt = np.dtype(dtype) if dtype is not None else get_config().numpy_dtype
        return cls(np.array(arr, dtype=dt, copy=True))

    def to_host(self) -> np.ndarray:
        return self._data.copy()
