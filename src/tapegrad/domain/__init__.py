from ._errors import (
    TapeGradError,
    UsageError,
    NotComputedError,
    GraphMismatchError,
    ShapeError,
    ShapeMismatchError,
    DimensionError,
    UnsupportedOperationError,
    DeviceNotSupportedError,
    DeviceMismatchError,
)
from ._function import Arity, Function
from ._storage import ITensorStorage
from .device import Device, DeviceType, DeviceLike

__all__ = [
    TapeGradError.__name__,
    UsageError.__name__,
    NotComputedError.__name__,
    GraphMismatchError.__name__,
    ShapeError.__name__,
    ShapeMismatchError.__name__,
    DimensionError.__name__,
    UnsupportedOperationError.__name__,
    DeviceNotSupportedError.__name__,
    DeviceMismatchError.__name__,
    Arity.__name__,
    Function.__name__,
    ITensorStorage.__name__,
    Device.__name__,
    DeviceType.__name__,
    DeviceLike.__name__,
]
