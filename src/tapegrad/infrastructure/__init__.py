from ._config import TapeGradConfig, get_config, set_config
from ._context import Context
from ._function import (
    AddFn,
    SubFn,
    MulFn,
    DivFn,
    MatMulFn,
    TransposeFn,
    ExpMFn,
)
from ._graph import Graph
from ._node import Node, Operation
from ._tensor import Tensor
from ._value_cell import ValueCell
from .storage import ArrayStorage, NumpyStorage, CupyStorage, cuda_available

__all__ = [
    TapeGradConfig.__name__,
    get_config.__name__,
    set_config.__name__,
    Context.__name__,
    AddFn.__name__,
    SubFn.__name__,
    MulFn.__name__,
    DivFn.__name__,
    MatMulFn.__name__,
    TransposeFn.__name__,
    ExpMFn.__name__,
    Graph.__name__,
    Node.__name__,
    Operation.__name__,
    Tensor.__name__,
    ValueCell.__name__,
    ArrayStorage.__name__,
    NumpyStorage.__name__,
    CupyStorage.__name__,
    cuda_available.__name__,
]
