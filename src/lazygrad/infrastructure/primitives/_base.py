"""
Shared building blocks for concrete primitives.

This module provides the validation helpers used by shape/type inference and
three abstract families that most kinds derive from:

- `ElementwiseUnary`: one input, output spec equal to the input spec;
- `ElementwiseBinary`: two inputs of identical shape/dtype/device;
- `Comparison`: like `ElementwiseBinary` but producing booleans and zero
  derivatives.

Broadcasting is never performed here. Operands of elementwise primitives
must already have identical shapes; the op builders insert explicit
`BroadcastTo` nodes to get there.
"""

from __future__ import annotations

from abc import ABC
from typing import Iterable, Optional, Sequence

from ...domain._array import ArraySpec, IArray
from ...domain._dtype import DType
from ...domain._errors import DTypeError, DeviceMismatchError, ShapeError
from ...domain._primitive import Primitive


def check_arity(name: str, inputs: Sequence[ArraySpec], n: int) -> None:
    if len(inputs) != n:
        raise TypeError(f"{name} expects {n} input(s), got {len(inputs)}")


def common_device(inputs: Sequence[ArraySpec]):
    """Return the shared device of `inputs` or raise `DeviceMismatchError`."""
    device = inputs[0].device
    for spec in inputs[1:]:
        if spec.device != device:
            raise DeviceMismatchError(str(device), str(spec.device))
    return device


def common_dtype(name: str, inputs: Sequence[ArraySpec]) -> DType:
    """Return the shared element type of `inputs` or raise `DTypeError`."""
    dtype = inputs[0].dtype
    for spec in inputs[1:]:
        if spec.dtype != dtype:
            raise DTypeError(
                f"{name}: element types differ ({dtype} vs {spec.dtype}); "
                "cast explicitly with astype"
            )
    return dtype


def common_shape(name: str, inputs: Sequence[ArraySpec]) -> tuple[int, ...]:
    """Return the shared shape of `inputs` or raise `ShapeError`."""
    shape = inputs[0].shape
    for spec in inputs[1:]:
        if spec.shape != shape:
            raise ShapeError(
                f"{name}: shapes differ ({shape} vs {spec.shape}); "
                "broadcast explicitly with broadcast_to"
            )
    return shape


def require_floating(name: str, dtype: DType) -> None:
    if not dtype.is_floating:
        raise DTypeError(f"{name} requires a floating dtype, got {dtype}")


def reject_bool(name: str, dtype: DType) -> None:
    if dtype == DType.bool_:
        raise DTypeError(f"{name} is not defined for {dtype}")


def normalize_axes(axes: Optional[Iterable[int]], ndim: int) -> tuple[int, ...]:
    """
    Resolve negative axes and sort them.

    Parameters
    ----------
    axes : Optional[Iterable[int]]
        Axes to normalize. None selects every axis.
    ndim : int
        Rank of the array the axes refer to.

    Returns
    -------
    tuple[int, ...]
        Sorted, unique, non-negative axes.

    Raises
    ------
    ShapeError
        If an axis is out of range or repeated.
    """
    if axes is None:
        return tuple(range(ndim))
    out = []
    for ax in axes:
        ax = int(ax)
        if not -ndim <= ax < ndim:
            raise ShapeError(f"axis {ax} is out of range for rank {ndim}")
        out.append(ax % ndim if ndim else ax)
    if len(set(out)) != len(out):
        raise ShapeError(f"repeated axis in {tuple(axes)}")
    return tuple(sorted(out))


def add_tangents(*terms: Optional[IArray]) -> Optional[IArray]:
    """Sum the non-None tangent contributions; None when every term is None."""
    total = None
    for t in terms:
        if t is None:
            continue
        total = t if total is None else total + t
    return total


class ElementwiseUnary(Primitive, ABC):
    """
    Base class for shape-preserving single-input primitives.

    Set `floating_only` on subclasses whose mathematics is only defined on
    floating-point values (exp, log, ...), and clear `bool_ok` on those NumPy
    refuses for booleans (negative).
    """

    floating_only = False
    bool_ok = True

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        if self.floating_only:
            require_floating(self.name, x.dtype)
        if not self.bool_ok:
            reject_bool(self.name, x.dtype)
        return ArraySpec(shape=x.shape, dtype=x.dtype, device=x.device)


class ElementwiseBinary(Primitive, ABC):
    """Base class for two-input primitives over operands of identical spec."""

    floating_only = False
    bool_ok = True

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 2)
        device = common_device(inputs)
        dtype = common_dtype(self.name, inputs)
        shape = common_shape(self.name, inputs)
        if self.floating_only:
            require_floating(self.name, dtype)
        if not self.bool_ok:
            reject_bool(self.name, dtype)
        return ArraySpec(shape=shape, dtype=dtype, device=device)


class Comparison(ElementwiseBinary, ABC):
    """
    Base class for elementwise comparisons.

    The output is boolean and the derivative is zero everywhere.
    """

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        spec = super().infer(inputs)
        return ArraySpec(shape=spec.shape, dtype=DType.bool_, device=spec.device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.zeros_like(primals[0]), ops.zeros_like(primals[1])]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.zeros_like(output)
