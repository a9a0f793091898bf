"""
Element-type and placement conversions.

Casting and device transfer are never implicit; these primitives are the
only way an array changes dtype or device.
"""

from __future__ import annotations

from typing import Sequence, Union

from ...domain._array import ArraySpec
from ...domain._dtype import DType
from ...domain._primitive import Primitive
from ...domain.device._device import Device
from ._base import check_arity


class AsType(Primitive):
    """
    Cast to `dtype`.

    Gradients flow only between floating types; any cast touching an integer
    or boolean type has a zero derivative.
    """

    name = "astype"

    def __init__(self, dtype) -> None:
        self.dtype = DType.from_any(dtype)

    def params(self):
        return {"dtype": self.dtype.value}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        return ArraySpec(shape=x.shape, dtype=self.dtype, device=x.device)

    def _differentiable(self, source: DType) -> bool:
        return source.is_floating and self.dtype.is_floating

    def vjp(self, cotangent, primals, output):
        from .. import ops

        x = primals[0]
        if not self._differentiable(x.dtype):
            return [ops.zeros_like(x)]
        return [ops.astype(cotangent, x.dtype)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        if not self._differentiable(primals[0].dtype):
            return ops.zeros_like(output)
        return ops.astype(tangents[0], self.dtype)


class ToDevice(Primitive):
    """
    Copy to another device.

    The kernel is looked up for the *target* device type, so a transfer to
    ``gpu:0`` runs the GPU backend's upload and a transfer back runs the CPU
    backend's download.
    """

    name = "to_device"

    def __init__(self, device: Union[str, Device]) -> None:
        self.device = Device.parse(device)

    def params(self):
        return {"device": str(self.device)}

    def infer(self, inputs: Sequence[ArraySpec]) -> ArraySpec:
        check_arity(self.name, inputs, 1)
        (x,) = inputs
        return ArraySpec(shape=x.shape, dtype=x.dtype, device=self.device)

    def vjp(self, cotangent, primals, output):
        from .. import ops

        return [ops.to_device(cotangent, primals[0].device)]

    def jvp(self, primals, tangents, output):
        from .. import ops

        return ops.to_device(tangents[0], self.device)
