"""
Concrete lazy Array implementation.

This module provides `Array`, the value node of the deferred computation
graph. An `Array` satisfies the domain-level `IArray` protocol and is, at any
time, in one of three states:

- **pending**: it carries a `Pending` record `{primitive, inputs}` and no
  storage;
- **in flight**: the evaluator has enqueued its kernel on a stream and a
  completion `Event` is attached;
- **materialized**: its write-once `Storage` holds the value. The pending
  record is kept (so the array can still be differentiated) unless the
  evaluator pruned it.

Design notes
------------
- Building an array never computes anything: `Array._apply` runs the
  primitive's shape/type inference (failing fast with `ShapeError` /
  `DTypeError`) and records the dependency edges.
- Arrays are immutable. Operators (`+`, `*`, `@`, ...) delegate to the
  builders in `ops`, which insert explicit broadcast/lift primitives.
- Storage is shared-owned: each array holds one reference and releases it
  through `weakref.finalize` when it is garbage-collected.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union
import itertools
import threading
import weakref

import numpy as np

from ...domain._array import ArraySpec, IArray
from ...domain._dtype import DType
from ...domain._primitive import Primitive
from ...domain.device._device import Device
from ._array_context import Pending
from ._storage import Storage

Number = Union[int, float, bool]

_ids = itertools.count()


def _is_device_buffer(buffer: Any) -> bool:
    return type(buffer).__module__.startswith("cupy")


def _host_copy(buffer: Any) -> np.ndarray:
    if _is_device_buffer(buffer):
        import cupy as cp

        return cp.asnumpy(buffer)
    return np.array(buffer, copy=True)


class Array(IArray):
    """
    Lazy array value.

    Parameters
    ----------
    spec : ArraySpec
        Shape, element type and placement of the value.
    storage : Optional[Storage], optional
        Materialized storage for leaves.
    pending : Optional[Pending], optional
        Computation record for non-leaves.
    stream : Optional[Stream], optional
        Stream the evaluator should run this array's kernel on. Defaults to
        the device's default stream.

    Notes
    -----
    Exactly one of `storage` and `pending` must be given. Arrays are normally
    created through the factories (`array`, `zeros`, ...) and the op builders,
    not by calling this constructor directly.
    """

    def __init__(
        self,
        spec: ArraySpec,
        *,
        storage: Optional[Storage] = None,
        pending: Optional[Pending] = None,
        stream: Optional[Any] = None,
    ) -> None:
        if (storage is None) == (pending is None):
            raise ValueError("Array requires exactly one of storage or pending")
        self._id = next(_ids)
        self._spec = spec
        self._storage: Optional[Storage] = None
        self._pending: Optional[Pending] = pending
        self._stream = stream
        self._event = None
        self._lock = threading.Lock()
        if storage is not None:
            self._set_storage(storage)

    # ----------------------------
    # Construction
    # ----------------------------
    @classmethod
    def _from_buffer(cls, buffer: Any, device: Device) -> "Array":
        """
        Wrap an owned backend buffer as a materialized leaf.

        The caller must not keep other references to `buffer`; once the leaf
        is collected the buffer may be recycled.
        """
        spec = ArraySpec(
            shape=tuple(int(d) for d in buffer.shape),
            dtype=DType.from_any(buffer.dtype),
            device=device,
        )
        return cls(spec, storage=Storage(buffer=buffer, device=device))

    @classmethod
    def _apply(cls, primitive: Primitive, inputs: Sequence["Array"]) -> "Array":
        """
        Build a pending array producing `primitive(*inputs)`.

        Parameters
        ----------
        primitive : Primitive
            Operation descriptor.
        inputs : Sequence[Array]
            Ordered inputs.

        Returns
        -------
        Array
            New unmaterialized array.

        Raises
        ------
        TypeError
            If an input is not an `Array`.
        ShapeError, DTypeError, DeviceMismatchError
            From the primitive's inference rule.
        """
        for x in inputs:
            if not isinstance(x, Array):
                raise TypeError(
                    f"{primitive.name} expects Array inputs, got {type(x)!r}"
                )
        spec = primitive.infer([x.spec for x in inputs])

        from ..scheduler._stream import current_stream

        return cls(
            spec,
            pending=Pending(primitive=primitive, inputs=inputs),
            stream=current_stream(spec.device),
        )

    # ----------------------------
    # Descriptor
    # ----------------------------
    @property
    def id(self) -> int:
        return self._id

    @property
    def spec(self) -> ArraySpec:
        return self._spec

    @property
    def shape(self) -> tuple[int, ...]:
        return self._spec.shape

    @property
    def dtype(self) -> DType:
        return self._spec.dtype

    @property
    def device(self) -> Device:
        return self._spec.device

    @property
    def ndim(self) -> int:
        return self._spec.ndim

    @property
    def size(self) -> int:
        return self._spec.size

    @property
    def nbytes(self) -> int:
        return self.size * self.dtype.itemsize

    @property
    def stream(self):
        return self._stream

    @property
    def primitive(self) -> Optional[Primitive]:
        pending = self._pending
        return None if pending is None else pending.primitive

    @property
    def inputs(self) -> tuple["Array", ...]:
        pending = self._pending
        return () if pending is None else tuple(pending.inputs)

    @property
    def is_materialized(self) -> bool:
        return self._storage is not None

    # ----------------------------
    # Storage hooks (evaluator only)
    # ----------------------------
    def _set_storage(self, storage: Storage) -> None:
        """
        Attach materialized storage. Storage is write-once.

        Raises
        ------
        RuntimeError
            If the array already has storage.
        ValueError
            If the buffer does not match the array's shape.
        """
        buffer = storage.buffer
        if tuple(int(d) for d in buffer.shape) != self.shape:
            raise ValueError(
                f"Buffer shape {tuple(buffer.shape)} does not match array shape {self.shape}"
            )
        with self._lock:
            if self._storage is not None:
                raise RuntimeError(f"Array #{self._id} is already materialized")
            self._storage = storage
        weakref.finalize(self, storage.decref)

    def _drop_pending(self) -> None:
        """Detach the pending record of a materialized array (graph pruning)."""
        if self._storage is not None:
            self._pending = None

    def _buffer(self) -> Any:
        storage = self._storage
        if storage is None:
            raise RuntimeError(f"Array #{self._id} is not materialized")
        return storage.buffer

    # ----------------------------
    # Evaluation
    # ----------------------------
    def eval(self) -> "Array":
        """Materialize this array and return it."""
        from ..scheduler._evaluator import materialize

        materialize([self])
        return self

    def to_numpy(self) -> np.ndarray:
        """
        Materialize the array and return a host copy of its value.

        Returns
        -------
        np.ndarray
            A fresh NumPy array; mutating it never affects the array.
        """
        self.eval()
        return _host_copy(self._buffer())

    def item(self) -> Any:
        if self.size != 1:
            raise ValueError(
                f"item() requires an array with one element, got shape={self.shape}"
            )
        return self.to_numpy().reshape(()).item()

    def tolist(self) -> Any:
        return self.to_numpy().tolist()

    def __bool__(self) -> bool:
        return bool(self.item())

    def __float__(self) -> float:
        return float(self.item())

    def __len__(self) -> int:
        if not self.shape:
            raise TypeError("len() of a 0-d array")
        return self.shape[0]

    def __repr__(self) -> str:
        if self.is_materialized:
            values = np.array2string(_host_copy(self._buffer()), separator=", ")
            return f"Array({values}, dtype={self.dtype}, device={self.device})"
        kind = self.primitive.name if self.primitive is not None else "?"
        return (
            f"Array(shape={self.shape}, dtype={self.dtype}, device={self.device}, "
            f"pending={kind})"
        )

    __hash__ = object.__hash__

    # ----------------------------
    # Operators
    # ----------------------------
    def __add__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.add(self, other)

    def __radd__(self, other: Number) -> "Array":
        from .. import ops

        return ops.add(other, self)

    def __sub__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.subtract(self, other)

    def __rsub__(self, other: Number) -> "Array":
        from .. import ops

        return ops.subtract(other, self)

    def __mul__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.multiply(self, other)

    def __rmul__(self, other: Number) -> "Array":
        from .. import ops

        return ops.multiply(other, self)

    def __truediv__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.divide(self, other)

    def __rtruediv__(self, other: Number) -> "Array":
        from .. import ops

        return ops.divide(other, self)

    def __pow__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.power(self, other)

    def __rpow__(self, other: Number) -> "Array":
        from .. import ops

        return ops.power(other, self)

    def __matmul__(self, other: "Array") -> "Array":
        from .. import ops

        return ops.matmul(self, other)

    def __neg__(self) -> "Array":
        from .. import ops

        return ops.negative(self)

    def __eq__(self, other: Union["Array", Number]) -> "Array":  # type: ignore[override]
        from .. import ops

        return ops.equal(self, other)

    def __ne__(self, other: Union["Array", Number]) -> "Array":  # type: ignore[override]
        from .. import ops

        return ops.not_equal(self, other)

    def __lt__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.less(self, other)

    def __le__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.less_equal(self, other)

    def __gt__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.greater(self, other)

    def __ge__(self, other: Union["Array", Number]) -> "Array":
        from .. import ops

        return ops.greater_equal(self, other)

    # ----------------------------
    # Method forms
    # ----------------------------
    @property
    def T(self) -> "Array":
        from .. import ops

        return ops.transpose(self)

    def transpose(self, *axes: int) -> "Array":
        from .. import ops

        return ops.transpose(self, axes if axes else None)

    def reshape(self, *shape) -> "Array":
        from .. import ops

        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = tuple(shape[0])
        return ops.reshape(self, shape)

    def sum(self, axis=None, keepdims: bool = False) -> "Array":
        from .. import ops

        return ops.sum(self, axis=axis, keepdims=keepdims)

    def mean(self, axis=None, keepdims: bool = False) -> "Array":
        from .. import ops

        return ops.mean(self, axis=axis, keepdims=keepdims)

    def max(self, axis=None, keepdims: bool = False) -> "Array":
        from .. import ops

        return ops.max(self, axis=axis, keepdims=keepdims)

    def exp(self) -> "Array":
        from .. import ops

        return ops.exp(self)

    def log(self) -> "Array":
        from .. import ops

        return ops.log(self)

    def astype(self, dtype: Any) -> "Array":
        from .. import ops

        return ops.astype(self, dtype)

    def to(self, device: Union[str, Device]) -> "Array":
        from .. import ops

        return ops.to_device(self, device)
