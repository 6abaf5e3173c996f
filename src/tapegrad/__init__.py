"""
tapegrad: a tape-based reverse-mode automatic differentiation engine.

Typical usage::

    from tapegrad import Graph, NumpyStorage

    g = Graph()
    x = g.create_leaf(NumpyStorage.from_numpy([1.0, 2.0]))
    y = g.create_leaf(NumpyStorage.from_numpy([3.0, 4.0]))
    w = (x + y) + x
    w.forward()
    w.backward()
    x.grad()  # array([2., 2.], dtype=float32)
"""

import logging

from .domain import (
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
    Arity,
    Function,
    ITensorStorage,
    Device,
    DeviceType,
    DeviceLike,
)
from .infrastructure import (
    TapeGradConfig,
    get_config,
    set_config,
    Context,
    AddFn,
    SubFn,
    MulFn,
    DivFn,
    MatMulFn,
    TransposeFn,
    ExpMFn,
    Graph,
    Node,
    Operation,
    Tensor,
    ValueCell,
    ArrayStorage,
    NumpyStorage,
    CupyStorage,
    cuda_available,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0a0"

__all__ = [
    "TapeGradError",
    "UsageError",
    "NotComputedError",
    "GraphMismatchError",
    "ShapeError",
    "ShapeMismatchError",
    "DimensionError",
    "UnsupportedOperationError",
    "DeviceNotSupportedError",
    "DeviceMismatchError",
    "Arity",
    "Function",
    "ITensorStorage",
    "Device",
    "DeviceType",
    "DeviceLike",
    "TapeGradConfig",
    "get_config",
    "set_config",
    "Context",
    "AddFn",
    "SubFn",
    "MulFn",
    "DivFn",
    "MatMulFn",
    "TransposeFn",
    "ExpMFn",
    "Graph",
    "Node",
    "Operation",
    "Tensor",
    "ValueCell",
    "ArrayStorage",
    "NumpyStorage",
    "CupyStorage",
    "cuda_available",
]
