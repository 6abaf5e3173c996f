"""
CUDA storage backend backed by CuPy.

CuPy is an optional dependency (``pip install tapegrad[cuda]``). It is
imported lazily, so importing tapegrad never requires a GPU. Using this
backend without CuPy or without a visible CUDA device raises
`DeviceNotSupportedError`.
"""

from __future__ import annotations

import importlib.util
from typing import Any, Optional

import numpy as np

from ...domain._errors import DeviceNotSupportedError
from ...domain.device._device import Device
from .._config import get_config
from ._array_storage import ArrayStorage


def _import_cupy(op: str, device: str = "cuda") -> Any:
    try:
        import cupy
    except ImportError as e:
        raise DeviceNotSupportedError(
            op, device, reason=f"CuPy is not installed ({e})"
        ) from e
    return cupy


def cuda_available() -> bool:
    """Return True if CuPy is installed and at least one CUDA device is visible."""
    if importlib.util.find_spec("cupy") is None:
        return False
    cupy = _import_cupy("cuda_available")
    try:
        return int(cupy.cuda.runtime.getDeviceCount()) > 0
    except cupy.cuda.runtime.CUDARuntimeError:
        return False


class CupyStorage(ArrayStorage):
    """
    Tensor storage holding a `cupy.ndarray` in CUDA device memory.

    Parameters
    ----------
    data : cupy.ndarray
        Device array to wrap. It is not copied.
    device : Optional[Device]
        CUDA device descriptor. Defaults to the device `data` lives on.
    """

    __slots__ = ()

    def __init__(self, data: Any, device: Optional[Device] = None) -> None:
        cupy = _import_cupy("CupyStorage", str(device or "cuda"))
        if not isinstance(data, cupy.ndarray):
            raise TypeError(f"CupyStorage expects cupy.ndarray, got {type(data)!r}")
        if device is None:
            device = Device.cuda(int(data.device.id))
        elif not device.is_cuda():
            raise ValueError(f"CupyStorage lives on a CUDA device, got {device}")
        super().__init__(data, device)

    @classmethod
    def _xp(cls) -> Any:
        return _import_cupy("CupyStorage")

    def _device_scope(self):
        return self._xp().cuda.Device(self._device.index)

    @classmethod
    def from_numpy(
        cls,
        arr: Any,
        *,
        device: Optional[Device] = None,
        dtype: Any = None,
    ) -> "CupyStorage":
        """
        Copy host data to a CUDA device.

        Parameters
        ----------
        arr : array_like
            Host data.
        device : Optional[Device]
            Target CUDA device, ``cuda:0`` by default.
        dtype : optional
            Target dtype. Defaults to the configured `default_dtype`.

        Raises
        ------
        DeviceNotSupportedError
            If CuPy is missing or the device cannot be selected.
        """
        device = device or Device.cuda(0)
        if not device.is_cuda():
            raise ValueError(f"CupyStorage.from_numpy requires a CUDA device, got {device}")

        cupy = _import_cupy("from_numpy", str(device))
        dt = np.dtype(dtype) if dtype is not None else get_config().numpy_dtype
        host = np.array(arr, dtype=dt, copy=True)
        try:
            with cupy.cuda.Device(device.index):
                data = cupy.asarray(host)
        except cupy.cuda.runtime.CUDARuntimeError as e:
            raise DeviceNotSupportedError("from_numpy", str(device), reason=str(e)) from e
        return cls(data, device)

    def to_host(self) -> np.ndarray:
        return self._xp().asnumpy(self._data)
