"""
Backend-agnostic contracts: protocols, abstract primitives, element types,
device descriptors and the error taxonomy.
"""

from ._array import ArraySpec, IArray
from ._dtype import DType
from ._errors import (
    ComputeError,
    CyclicGraphError,
    DTypeError,
    DeviceMismatchError,
    ShapeError,
    TreeStructureError,
    UnsupportedOperationError,
)
from ._optimizers import IOptimizer
from ._primitive import Primitive
from .device import Device, DeviceInfo, DeviceLike, DeviceType

__all__ = [
    ArraySpec.__name__,
    IArray.__name__,
    DType.__name__,
    Primitive.__name__,
    IOptimizer.__name__,
    Device.__name__,
    DeviceInfo.__name__,
    DeviceLike.__name__,
    DeviceType.__name__,
    ShapeError.__name__,
    DTypeError.__name__,
    DeviceMismatchError.__name__,
    UnsupportedOperationError.__name__,
    ComputeError.__name__,
    CyclicGraphError.__name__,
    TreeStructureError.__name__,
]
