"""
Public operation builders.

Builders are the user-facing layer over primitives. They never compute
anything; each returns a new pending `Array`. Their job is to make the
implicit explicit before a primitive sees its operands:

- Python scalars are lifted to 0-d leaves of the other operand's dtype and
  device (a float scalar against an integer array is a `DTypeError`);
- operands of different shapes are broadcast with explicit `BroadcastTo`
  nodes following NumPy broadcasting rules (`ShapeError` otherwise);
- no-op broadcasts, casts and transfers return the operand unchanged.

Dtype promotion is never performed; mixing element types requires `astype`.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np

from ..domain._dtype import DType
from ..domain._errors import DTypeError, ShapeError
from ..domain.device._device import Device
from . import primitives as P
from .array._array import Array
from .array._factories import scalar
from .primitives._base import normalize_axes

Operand = Union[Array, int, float, bool]
AxisArg = Optional[Union[int, Sequence[int]]]


# ----------------------------
# Operand preparation
# ----------------------------
def broadcast_shapes(*shapes: Sequence[int]) -> tuple[int, ...]:
    """
    Compute the NumPy broadcast of `shapes`.

    Raises
    ------
    ShapeError
        If the shapes are incompatible.
    """
    try:
        return tuple(int(d) for d in np.broadcast_shapes(*shapes))
    except ValueError as e:
        raise ShapeError(
            f"shapes {', '.join(str(tuple(s)) for s in shapes)} cannot be broadcast together"
        ) from e


def _lift(x: Operand, like: Array) -> Array:
    if isinstance(x, Array):
        return x
    if not isinstance(x, (bool, int, float, np.bool_, np.integer, np.floating)):
        raise TypeError(f"unsupported operand type {type(x).__name__!r}")
    dtype = like.dtype
    if dtype is DType.bool_ and not isinstance(x, (bool, np.bool_)):
        raise DTypeError(f"cannot combine scalar {x!r} with a bool array")
    if not dtype.is_floating and isinstance(x, (float, np.floating)):
        raise DTypeError(f"cannot combine float scalar {x!r} with a {dtype} array")
    return scalar(x, dtype, like.device)


def _operands(*xs: Operand) -> list[Array]:
    like = next((x for x in xs if isinstance(x, Array)), None)
    if like is None:
        raise TypeError("at least one operand must be an Array")
    return [_lift(x, like) for x in xs]


def _broadcast_all(*arrays: Array) -> list[Array]:
    shape = broadcast_shapes(*(a.shape for a in arrays))
    return [broadcast_to(a, shape) for a in arrays]


def _binary(primitive, a: Operand, b: Operand) -> Array:
    a, b = _broadcast_all(*_operands(a, b))
    return Array._apply(primitive, [a, b])


def _unary(primitive, a: Array) -> Array:
    if not isinstance(a, Array):
        raise TypeError(f"{primitive.name} expects an Array, got {type(a).__name__!r}")
    return Array._apply(primitive, [a])


# ----------------------------
# Arithmetic
# ----------------------------
def add(a: Operand, b: Operand) -> Array:
    return _binary(P.Add(), a, b)


def subtract(a: Operand, b: Operand) -> Array:
    return _binary(P.Subtract(), a, b)


def multiply(a: Operand, b: Operand) -> Array:
    return _binary(P.Multiply(), a, b)


def divide(a: Operand, b: Operand) -> Array:
    return _binary(P.Divide(), a, b)


def maximum(a: Operand, b: Operand) -> Array:
    return _binary(P.Maximum(), a, b)


def power(a: Operand, b: Operand) -> Array:
    return _binary(P.Power(), a, b)


def negative(a: Array) -> Array:
    return _unary(P.Negative(), a)


def exp(a: Array) -> Array:
    return _unary(P.Exp(), a)


def log(a: Array) -> Array:
    return _unary(P.Log(), a)


def sqrt(a: Array) -> Array:
    return _unary(P.Sqrt(), a)


def tanh(a: Array) -> Array:
    return _unary(P.Tanh(), a)


def sigmoid(a: Array) -> Array:
    return _unary(P.Sigmoid(), a)


def sin(a: Array) -> Array:
    return _unary(P.Sin(), a)


def cos(a: Array) -> Array:
    return _unary(P.Cos(), a)


def abs(a: Array) -> Array:
    return _unary(P.Abs(), a)


def floor(a: Array) -> Array:
    return _unary(P.Floor(), a)


# ----------------------------
# Comparison
# ----------------------------
def equal(a: Operand, b: Operand) -> Array:
    return _binary(P.Equal(), a, b)


def not_equal(a: Operand, b: Operand) -> Array:
    return _binary(P.NotEqual(), a, b)


def greater(a: Operand, b: Operand) -> Array:
    return _binary(P.Greater(), a, b)


def greater_equal(a: Operand, b: Operand) -> Array:
    return _binary(P.GreaterEqual(), a, b)


def less(a: Operand, b: Operand) -> Array:
    return _binary(P.Less(), a, b)


def less_equal(a: Operand, b: Operand) -> Array:
    return _binary(P.LessEqual(), a, b)


# ----------------------------
# Linear algebra
# ----------------------------
def matmul(a: Array, b: Array) -> Array:
    """
    Matrix product of rank >= 2 operands.

    Leading batch dimensions are broadcast against each other; the last two
    axes are contracted as ``(..., n, k) @ (..., k, m) -> (..., n, m)``.
    """
    if not isinstance(a, Array) or not isinstance(b, Array):
        raise TypeError("matmul expects Array operands")
    if a.ndim >= 2 and b.ndim >= 2 and a.shape[:-2] != b.shape[:-2]:
        batch = broadcast_shapes(a.shape[:-2], b.shape[:-2])
        a = broadcast_to(a, batch + a.shape[-2:])
        b = broadcast_to(b, batch + b.shape[-2:])
    return Array._apply(P.Matmul(), [a, b])


def transpose(a: Array, axes: Optional[Sequence[int]] = None) -> Array:
    """Permute axes; reverses them when `axes` is omitted."""
    if axes is None:
        axes = tuple(reversed(range(a.ndim)))
    given = tuple(int(ax) for ax in axes)
    for ax in given:
        if not -a.ndim <= ax < a.ndim:
            raise ShapeError(f"axes {given} out of range for rank {a.ndim}")
    axes = tuple(ax % a.ndim for ax in given)
    if sorted(axes) != list(range(a.ndim)):
        raise ShapeError(f"axes {given} is not a permutation of rank {a.ndim}")
    if axes == tuple(range(a.ndim)):
        return a
    return _unary(P.Transpose(axes), a)


# ----------------------------
# Shape
# ----------------------------
def reshape(a: Array, shape: Union[int, Sequence[int]]) -> Array:
    """
    Reshape to `shape`; a single -1 entry is inferred from the element count.
    """
    if isinstance(shape, (int, np.integer)):
        shape = (int(shape),)
    shape = [int(d) for d in shape]
    if shape.count(-1) > 1:
        raise ShapeError(f"only one dimension can be -1, got {tuple(shape)}")
    if -1 in shape:
        known = 1
        for d in shape:
            if d != -1:
                known *= d
        if known == 0 or a.size % known:
            raise ShapeError(f"cannot reshape {a.shape} into {tuple(shape)}")
        shape[shape.index(-1)] = a.size // known
    shape = tuple(shape)
    if shape == a.shape:
        return a
    return _unary(P.Reshape(shape), a)


def broadcast_to(a: Array, shape: Sequence[int]) -> Array:
    shape = tuple(int(d) for d in shape)
    if shape == a.shape:
        return a
    return _unary(P.BroadcastTo(shape), a)


# ----------------------------
# Reductions
# ----------------------------
def _axes(a: Array, axis: AxisArg) -> tuple[int, ...]:
    if isinstance(axis, (int, np.integer)):
        axis = (int(axis),)
    return normalize_axes(axis, a.ndim)


def sum(a: Array, axis: AxisArg = None, keepdims: bool = False) -> Array:
    return _unary(P.Sum(_axes(a, axis), keepdims), a)


def max(a: Array, axis: AxisArg = None, keepdims: bool = False) -> Array:
    return _unary(P.Max(_axes(a, axis), keepdims), a)


def mean(a: Array, axis: AxisArg = None, keepdims: bool = False) -> Array:
    """Arithmetic mean; integer and bool inputs are averaged in float32."""
    if not a.dtype.is_floating:
        a = astype(a, DType.float32)
    axes = _axes(a, axis)
    count = 1
    for ax in axes:
        count *= a.shape[ax]
    return divide(sum(a, axis=axes, keepdims=keepdims), float(count))


# ----------------------------
# Type / device / control
# ----------------------------
def astype(a: Array, dtype: Any) -> Array:
    dtype = DType.from_any(dtype)
    if dtype is a.dtype:
        return a
    return _unary(P.AsType(dtype), a)


def to_device(a: Array, device: Union[str, Device]) -> Array:
    device = Device.parse(device)
    if device == a.device:
        return a
    return _unary(P.ToDevice(device), a)


def stop_gradient(a: Array) -> Array:
    """Return `a` unchanged in value, but opaque to differentiation."""
    return _unary(P.StopGradient(), a)


def where(cond: Array, x: Operand, y: Operand) -> Array:
    """
    Elementwise ``x if cond else y``.

    `cond` must be a bool array. `x` and `y` may be scalars as long as one
    of them is an array.
    """
    if not isinstance(cond, Array):
        raise TypeError("where condition must be an Array")
    x, y = _operands(x, y)
    cond, x, y = _broadcast_all(cond, x, y)
    return Array._apply(P.Where(), [cond, x, y])


# ----------------------------
# Lazy fills
# ----------------------------
def full_like(a: Array, fill_value: Any, dtype: Any = None) -> Array:
    """
    Array of `a`'s shape and device filled with `fill_value`.

    Built as a broadcast 0-d leaf, so it allocates no full-size buffer.
    """
    dtype = a.dtype if dtype is None else DType.from_any(dtype)
    return broadcast_to(scalar(fill_value, dtype, a.device), a.shape)


def zeros_like(a: Array, dtype: Any = None) -> Array:
    return full_like(a, 0, dtype)


def ones_like(a: Array, dtype: Any = None) -> Array:
    return full_like(a, 1, dtype)
