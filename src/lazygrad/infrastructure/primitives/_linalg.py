"""
Linear-algebra primitives: batched matrix product and axis permutation.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ...domain._array import ArraySpec
from ...domain._errors import ShapeError
from ...domain._primitive import Primitive
from ._base import add_tangents, check_arity, common_device, common_dtype


def _swap_last(ndim: int) -> tuple[int, ...]:
    axes = list(range(ndim))
    axes[-1], axes[-2] = axes[-2], axes[-1]
    return tuple(axes)


class Matmul(Primitive):
    """
    Batched matrix product ``a @ b``.

    Both operands must have rank >= 2, the same rank and identical leading
    (batch) dimensions; the contraction is over ``a.shape[-1]`` and
    ``b.shape[-2]``.

    Backward rule:
        ``dA = G @ B^T``, ``dB = A^T @ G`` (transposing the last two axes)
    """

    name = "matmul"

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 2)
        device = common_device(inputs)
        dtype = common_dtype(self.name, inputs)
        a, b = inputs
        if a.ndim < 2 or b.ndim < 2:
            raise ShapeError(
                f"matmul requires rank >= 2 operands, got {a.shape} and {b.shape}"
            )
        if a.ndim != b.ndim or a.shape[:-2] != b.shape[:-2]:
            raise ShapeError(
                f"matmul batch dimensions differ: {a.shape} vs {b.shape}"
            )
        if a.shape[-1] != b.shape[-2]:
            raise ShapeError(
                f"matmul inner dimensions differ: {a.shape} @ {b.shape}"
            )
        shape = a.shape[:-1] + (b.shape[-1],)
        return ArraySpec(shape=shape, dtype=dtype, device=device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        a, b = primals
        return [
            ops.matmul(cotangent, ops.transpose(b, _swap_last(b.ndim))),
            ops.matmul(ops.transpose(a, _swap_last(a.ndim)), cotangent),
        ]

    def jvp(self, primals, tangents, output):
        from .. import ops

        a, b = primals
        ta, tb = tangents
        return add_tangents(
            None if ta is None else ops.matmul(ta, b),
            None if tb is None else ops.matmul(a, tb),
        )


class Transpose(Primitive):
    """
    Axis permutation.

    Parameters
    ----------
    axes : Sequence[int]
        Permutation of ``range(ndim)``; output axis ``i`` is input axis
        ``axes[i]``.

    Notes
    -----
    The CPU kernel returns a strided view, so the output aliases its input.
    """

    name = "transpose"
    aliases_input = True

    def __init__(self, axes: Sequence[int]) -> None:
        self.axes = tuple(int(a) for a in axes)

    def params(self):
        return {"axes": self.axes}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        if sorted(self.axes) != list(range(x.ndim)):
            raise ShapeError(
                f"axes {self.axes} is not a permutation of the {x.ndim} axes of {x.shape}"
            )
        shape = tuple(x.shape[a] for a in self.axes)
        return ArraySpec(shape=shape, dtype=x.dtype, device=x.device)

    def inverse(self) -> tuple[int, ...]:
        inv: list[Optional[int]] = [None] * len(self.axes)
        for i, a in enumerate(self.axes):
            inv[a] = i
        return tuple(inv)  # type: ignore[arg-type]

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.transpose(cotangent, self.inverse())]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.transpose(tangents[0], self.axes)
