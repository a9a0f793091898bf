"""
Leaf-array factories.

Every factory builds a *materialized* leaf: the value is copied into a buffer
owned by the runtime, so the caller's data is never aliased and a recycled
buffer can never show up in caller memory.

Default element types follow the input: NumPy arrays keep their dtype, while
Python floats default to float32 and Python ints to int32.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np

from ...config import get_config
from ...domain._dtype import DType
from ...domain.device._device import Device
from ._array import Array

DeviceArg = Optional[Union[str, Device]]
ShapeArg = Union[int, Sequence[int]]


def _resolve_device(device: DeviceArg) -> Device:
    if device is None:
        return Device.parse(get_config().default_device)
    return Device.parse(device)


def _as_shape(shape: ShapeArg) -> tuple[int, ...]:
    if isinstance(shape, (int, np.integer)):
        return (int(shape),)
    return tuple(int(d) for d in shape)


def _default_dtype(data: Any, inferred: np.dtype) -> DType:
    if not isinstance(data, (np.ndarray, np.generic)):
        if inferred == np.float64:
            return DType.float32
        if inferred == np.int64:
            return DType.int32
    return DType.from_any(inferred)


def _leaf(buffer: np.ndarray, device: Device) -> Array:
    """Wrap a freshly allocated host buffer, uploading it for GPU devices."""
    if device.is_gpu():
        from ..backends._gpu import upload

        buffer = upload(buffer, device)
    return Array._from_buffer(buffer, device)


def array(data: Any, dtype: Any = None, device: DeviceArg = None) -> Array:
    """
    Create a leaf array from Python data or a NumPy array.

    Parameters
    ----------
    data : Any
        Nested sequences, a scalar, a NumPy array or an `Array`.
    dtype : Any, optional
        Element type. Inferred from `data` when omitted.
    device : str | Device, optional
        Placement. Defaults to `RuntimeConfig.default_device`.

    Returns
    -------
    Array
        A materialized leaf holding a private copy of `data`.
    """
    if isinstance(data, Array):
        data = data.to_numpy()
    raw = np.asarray(data)
    dt = DType.from_any(dtype) if dtype is not None else _default_dtype(data, raw.dtype)
    buffer = np.array(raw, dtype=dt.numpy, copy=True, order="C")
    return _leaf(buffer, _resolve_device(device))


def full(
    shape: ShapeArg, fill_value: Any, dtype: Any = None, device: DeviceArg = None
) -> Array:
    """Create a leaf of `shape` filled with `fill_value`."""
    dt = (
        DType.from_any(dtype)
        if dtype is not None
        else _default_dtype(fill_value, np.asarray(fill_value).dtype)
    )
    buffer = np.full(_as_shape(shape), fill_value, dtype=dt.numpy)
    return _leaf(buffer, _resolve_device(device))


def zeros(shape: ShapeArg, dtype: Any = DType.float32, device: DeviceArg = None) -> Array:
    return full(shape, 0, dtype=dtype, device=device)


def ones(shape: ShapeArg, dtype: Any = DType.float32, device: DeviceArg = None) -> Array:
    return full(shape, 1, dtype=dtype, device=device)


def arange(
    start: Union[int, float],
    stop: Optional[Union[int, float]] = None,
    step: Union[int, float] = 1,
    dtype: Any = None,
    device: DeviceArg = None,
) -> Array:
    """Create a 1-D leaf of evenly spaced values in ``[start, stop)``."""
    if stop is None:
        start, stop = 0, start
    raw = np.arange(start, stop, step)
    dt = DType.from_any(dtype) if dtype is not None else _default_dtype(start, raw.dtype)
    return _leaf(raw.astype(dt.numpy), _resolve_device(device))


def scalar(value: Any, dtype: DType, device: Device) -> Array:
    """Create a 0-d leaf, used when lifting Python scalars into graphs."""
    return _leaf(np.array(value, dtype=dtype.numpy), device)
