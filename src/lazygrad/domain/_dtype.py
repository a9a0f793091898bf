"""
Element type descriptors.

`DType` is the closed set of element types an array may carry. Each member
maps onto a NumPy dtype, which every backend (NumPy, CuPy, BLAS) accepts as
its native type descriptor.

The runtime performs no implicit promotion: primitives compare `DType`
members for equality and raise `DTypeError` on mismatch.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import numpy as np


class DType(Enum):
    """
    Supported array element types.

    The enum value is the canonical NumPy dtype name.
    """

    bool_ = "bool"
    int32 = "int32"
    int64 = "int64"
    float16 = "float16"
    float32 = "float32"
    float64 = "float64"

    @property
    def numpy(self) -> np.dtype:
        """Return the equivalent NumPy dtype."""
        return np.dtype(self.value)

    @property
    def itemsize(self) -> int:
        """Return the size of one element in bytes."""
        return self.numpy.itemsize

    @property
    def is_floating(self) -> bool:
        """Return True for floating-point element types."""
        return self in (DType.float16, DType.float32, DType.float64)

    @classmethod
    def from_any(cls, value: Any) -> "DType":
        """
        Normalize a dtype-like value into a `DType`.

        Parameters
        ----------
        value : Any
            A `DType`, a NumPy dtype / scalar type, or a dtype name.

        Returns
        -------
        DType
            The matching member.

        Raises
        ------
        TypeError
            If the dtype is not one of the supported element types.
        """
        if isinstance(value, DType):
            return value
        try:
            name = np.dtype(value).name
        except TypeError as e:
            raise TypeError(f"Unsupported dtype: {value!r}") from e
        for member in cls:
            if member.value == name:
                return member
        raise TypeError(f"Unsupported dtype: {name!r}")

    def __str__(self) -> str:
        return self.value
