"""
Shape-changing primitives: `Reshape` and `BroadcastTo`.

Both produce outputs that may alias their input storage (`aliases_input`).
`BroadcastTo` is the only way operands of different shapes are reconciled:
op builders insert it explicitly using NumPy broadcasting rules.
"""

from __future__ import annotations

from typing import Sequence

from ...domain._array import ArraySpec
from ...domain._errors import ShapeError
from ...domain._primitive import Primitive
from ._base import check_arity


class Reshape(Primitive):
    """
    Reinterpret the element order under a new shape of equal size.

    Parameters
    ----------
    shape : Sequence[int]
        Fully resolved target shape (no -1 placeholder).
    """

    name = "reshape"
    aliases_input = True

    def __init__(self, shape: Sequence[int]) -> None:
        self.shape = tuple(int(d) for d in shape)

    def params(self):
        return {"shape": self.shape}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        if any(d < 0 for d in self.shape):
            raise ShapeError(f"invalid reshape target {self.shape}")
        size = 1
        for d in self.shape:
            size *= d
        if size != x.size:
            raise ShapeError(
                f"cannot reshape array of shape {x.shape} ({x.size} elements) "
                f"into shape {self.shape}"
            )
        return ArraySpec(shape=self.shape, dtype=x.dtype, device=x.device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.reshape(cotangent, primals[0].shape)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.reshape(tangents[0], self.shape)


def broadcast_axes(
    in_shape: tuple[int, ...], out_shape: tuple[int, ...]
) -> tuple[int, ...]:
    """
    Return the output axes along which `in_shape` was expanded.

    These are the leading axes the input lacks plus every axis where the
    input has extent 1 and the output does not.
    """
    lead = len(out_shape) - len(in_shape)
    axes = list(range(lead))
    for i, d in enumerate(in_shape):
        if d == 1 and out_shape[lead + i] != 1:
            axes.append(lead + i)
    return tuple(axes)


class BroadcastTo(Primitive):
    """
    Expand an array to a larger shape under NumPy broadcasting rules.

    Backward rule:
        The cotangent is summed over the broadcast axes and reshaped back to
        the input shape.
    """

    name = "broadcast_to"
    aliases_input = True

    def __init__(self, shape: Sequence[int]) -> None:
        self.shape = tuple(int(d) for d in shape)

    def params(self):
        return {"shape": self.shape}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        if x.ndim > len(self.shape):
            raise ShapeError(f"cannot broadcast {x.shape} to lower rank {self.shape}")
        lead = len(self.shape) - x.ndim
        for i, d in enumerate(x.shape):
            if d != 1 and d != self.shape[lead + i]:
                raise ShapeError(f"cannot broadcast {x.shape} to {self.shape}")
        return ArraySpec(shape=self.shape, dtype=x.dtype, device=x.device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        x = primals[0]
        axes = broadcast_axes(x.shape, self.shape)
        g = cotangent
        if axes:
            g = ops.sum(g, axis=axes)
        return [ops.reshape(g, x.shape)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.broadcast_to(tangents[0], self.shape)
