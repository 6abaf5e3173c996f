"""
Device descriptors.

This module defines lightweight descriptors for the devices a storage backend
can live on:

- `DeviceType`: the device category (host CPU or CUDA accelerator)
- `Device`: a validated, hashable descriptor built from strings such as
  ``"cpu"`` or ``"cuda:0"``

Descriptors carry no backend resources. They are compared by the graph to
make sure every leaf of one tape lives on the same device.
"""

from enum import Enum
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    Attributes
    ----------
    CPU : DeviceType
        Host memory, served by the NumPy backend.
    CUDA : DeviceType
        CUDA accelerator memory, served by the CuPy backend.
    """

    CPU = "cpu"
    CUDA = "cuda"


class Device:
    """
    Concrete computation device descriptor.

    Parameters
    ----------
    device : str
        Device identifier string. Must be either:
        - "cpu"
        - "cuda:<index>", where <index> is a non-negative integer

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Examples
    --------
    >>> Device("cpu")
    Device('cpu')
    >>> Device("cuda:1").index
    1
    """

    __slots__ = ("type", "index")

    _CUDA_PATTERN = re.compile(r"^cuda:(\d+)$")

    def __init__(self, device: str):
        if device == "cpu":
            self.type = DeviceType.CPU
            self.index = None
        else:
            m = self._CUDA_PATTERN.match(device)
            if not m:
                raise ValueError(
                    f"Invalid device '{device}'. Expected 'cpu' or 'cuda:<index>'"
                )
            self.type = DeviceType.CUDA
            self.index = int(m.group(1))

    @classmethod
    def cpu(cls) -> "Device":
        """Return the host device descriptor."""
        return cls("cpu")

    @classmethod
    def cuda(cls, index: int = 0) -> "Device":
        """Return the descriptor of CUDA device `index`."""
        return cls(f"cuda:{int(index)}")

    def __str__(self) -> str:
        return "cpu" if self.type is DeviceType.CPU else f"cuda:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """Return True if this descriptor names the host."""
        return self.type is DeviceType.CPU

    def is_cuda(self) -> bool:
        """Return True if this descriptor names a CUDA device."""
        return self.type is DeviceType.CUDA
