"""
Array interface definitions.

This module defines the domain-level interface for lazy array values using
structural typing, plus `ArraySpec`, the static description (shape, element
type, placement) that shape/type inference works on.

An array is immutable: operations never mutate an existing array's logical
value, they produce new arrays. An array is either a leaf with materialized
storage or a pending node recording `{primitive, inputs}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from ._dtype import DType
from .device._device_protocol import DeviceLike


@dataclass(frozen=True)
class ArraySpec:
    """
    Static description of an array value.

    Attributes
    ----------
    shape : tuple[int, ...]
        Ordered non-negative dimension sizes.
    dtype : DType
        Element type.
    device : DeviceLike
        Placement of the value.
    """

    shape: tuple[int, ...]
    dtype: DType
    device: DeviceLike

    @property
    def ndim(self) -> int:
        return len(self.shape)

    @property
    def size(self) -> int:
        n = 1
        for d in self.shape:
            n *= int(d)
        return n


@runtime_checkable
class IArray(Protocol):
    """
    Lazy array interface.

    Notes
    -----
    - `id` is unique and increases with creation order; the evaluator uses it
      as the deterministic tie-break when ordering independent work.
    - `primitive` and `inputs` are None / empty for leaves.
    """

    @property
    def id(self) -> int:
        """Unique, creation-ordered identity."""
        ...

    @property
    def shape(self) -> tuple[int, ...]:
        """Return the array shape."""
        ...

    @property
    def dtype(self) -> DType:
        """Return the element type."""
        ...

    @property
    def device(self) -> DeviceLike:
        """Return the device placement."""
        ...

    @property
    def spec(self) -> ArraySpec:
        """Return the static (shape, dtype, device) description."""
        ...

    @property
    def is_materialized(self) -> bool:
        """Return True once storage has been written."""
        ...

    @property
    def primitive(self) -> Optional[Any]:
        """Return the producing primitive, or None for leaves."""
        ...

    @property
    def inputs(self) -> Sequence["IArray"]:
        """Return the ordered input arrays of the producing primitive."""
        ...

    def to_numpy(self) -> Any:
        """Materialize the array and return a host copy of its value."""
        ...
