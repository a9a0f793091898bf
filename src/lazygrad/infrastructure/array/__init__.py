"""
Array value model: the lazy `Array`, its storage and leaf factories.
"""

from ._array import Array
from ._array_context import Pending
from ._factories import arange, array, full, ones, scalar, zeros
from ._graph import collect, topological_order
from ._storage import BufferPool, Storage, default_buffer_pool

__all__ = [
    Array.__name__,
    Pending.__name__,
    Storage.__name__,
    BufferPool.__name__,
    "arange",
    "array",
    "collect",
    "default_buffer_pool",
    "full",
    "ones",
    "scalar",
    "topological_order",
    "zeros",
]
