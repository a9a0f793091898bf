"""
CPU backend (NumPy vectorized kernels).

Registers the generic kernels bound to NumPy for `DeviceType.CPU`, plus the
CPU side of device transfer: a transfer whose target is the CPU downloads a
GPU buffer or copies a host buffer.
"""

from __future__ import annotations

import logging

import numpy as np

from ...domain.device._device import DeviceType
from ._kernels import register_array_kernels
from ._registry import default_registry

logger = logging.getLogger(__name__)


def _to_host(primitive, inputs, spec, device, out=None):
    (x,) = inputs
    if type(x).__module__.startswith("cupy"):
        import cupy as cp

        with cp.cuda.Device(x.device.id):
            result = cp.asnumpy(x)
    else:
        result = np.array(x, copy=True)
    return result.astype(spec.dtype.numpy, copy=False)


register_array_kernels(default_registry, np, DeviceType.CPU, backend="numpy")
default_registry.register("to_device", DeviceType.CPU, _to_host, backend="numpy")
logger.info("numpy backend registered for cpu")
