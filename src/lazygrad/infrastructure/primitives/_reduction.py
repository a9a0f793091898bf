"""
Axis reductions: `Sum` and `Max`.

Axes are stored normalized (sorted, non-negative). The output dtype equals
the input dtype; boolean inputs must be cast before summation.
"""

from __future__ import annotations

from typing import Sequence

from ...domain._array import ArraySpec
from ...domain._dtype import DType
from ...domain._errors import DTypeError, ShapeError
from ...domain._primitive import Primitive
from ._base import check_arity


class _Reduction(Primitive):
    def __init__(self, axes: Sequence[int], keepdims: bool = False) -> None:
        self.axes = tuple(int(a) for a in axes)
        self.keepdims = bool(keepdims)

    def params(self):
        return {"axes": self.axes, "keepdims": self.keepdims}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        if x.dtype is DType.bool_:
            raise DTypeError(f"{self.name} of a bool array; cast it with astype first")
        for a in self.axes:
            if not 0 <= a < x.ndim:
                raise ShapeError(f"axis {a} is out of range for shape {x.shape}")
        return ArraySpec(
            shape=self.reduced_shape(x.shape), dtype=x.dtype, device=x.device
        )

    def reduced_shape(self, shape: tuple[int, ...]) -> tuple[int, ...]:
        if self.keepdims:
            return tuple(1 if i in self.axes else d for i, d in enumerate(shape))
        return tuple(d for i, d in enumerate(shape) if i not in self.axes)

    def kept_shape(self, shape: tuple[int, ...]) -> tuple[int, ...]:
        return tuple(1 if i in self.axes else d for i, d in enumerate(shape))

    def _expand(self, value, shape):
        """Broadcast a reduced value back to the input shape."""
        from .. import ops

        return ops.broadcast_to(ops.reshape(value, self.kept_shape(shape)), shape)


class Sum(_Reduction):
    """
    Sum over `axes`.

    Backward rule:
        The cotangent is broadcast back across the reduced axes.
    """

    name = "sum"

    def vjp(self, cotangent, primals, output):
        return [self._expand(cotangent, primals[0].shape)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.sum(tangents[0], axis=self.axes, keepdims=self.keepdims)


class Max(_Reduction):
    """
    Maximum over `axes`.

    Backward rule:
        The cotangent flows to the positions that attain the maximum. Ties
        share it evenly (floating dtypes); integer arrays route it to every
        tied position.
    """

    name = "max"

    def _selector(self, x, output):
        from .. import ops

        mask = ops.astype(x == self._expand(output, x.shape), x.dtype)
        if x.dtype.is_floating:
            count = ops.sum(mask, axis=self.axes, keepdims=True)
            mask = mask / ops.broadcast_to(count, x.shape)
        return mask

    def vjp(self, cotangent, primals, output):
        x = primals[0]
        return [self._expand(cotangent, x.shape) * self._selector(x, output)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        x = primals[0]
        return ops.sum(
            tangents[0] * self._selector(x, output),
            axis=self.axes,
            keepdims=self.keepdims,
        )
