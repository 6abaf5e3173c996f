from ._array_storage import ArrayStorage
from ._numpy_storage import NumpyStorage
from ._cupy_storage import CupyStorage, cuda_available

__all__ = [
    ArrayStorage.__name__,
    NumpyStorage.__name__,
    CupyStorage.__name__,
    cuda_available.__name__,
]
