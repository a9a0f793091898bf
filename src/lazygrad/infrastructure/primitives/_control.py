"""
Control primitives: `StopGradient` and the conditional `Where`.
"""

from __future__ import annotations

from typing import Sequence

from ...domain._array import ArraySpec
from ...domain._dtype import DType
from ...domain._errors import DTypeError
from ...domain._primitive import Primitive
from ._base import check_arity, common_device, common_dtype, common_shape


class StopGradient(Primitive):
    """
    Identity in the forward pass, zero derivative in both modes.

    The output is a view of the input.
    """

    name = "stop_gradient"
    aliases_input = True

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        return ArraySpec(shape=x.shape, dtype=x.dtype, device=x.device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.zeros_like(primals[0])]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.zeros_like(output)


class Where(Primitive):
    """
    Elementwise selection ``cond ? x : y``.

    Inputs are ``(cond, x, y)`` with identical shapes; `cond` is boolean and
    `x`, `y` share a dtype. The condition receives a zero gradient.
    """

    name = "where"

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 3)
        device = common_device(inputs)
        shape = common_shape(self.name, inputs)
        cond, x, y = inputs
        if cond.dtype is not DType.bool_:
            raise DTypeError(f"where condition must be bool, got {cond.dtype}")
        dtype = common_dtype(self.name, [x, y])
        return ArraySpec(shape=shape, dtype=dtype, device=device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        cond = primals[0]
        return [
            ops.zeros_like(cond),
            ops.where(cond, cotangent, 0),
            ops.where(cond, 0, cotangent),
        ]

    def jvp(self, primals, tangents, output):
        from .. import ops

        cond = primals[0]
        _, tx, ty = tangents
        tx = ops.zeros_like(output) if tx is None else tx
        ty = ops.zeros_like(output) if ty is None else ty
        return ops.where(cond, tx, ty)
