"""
GPU backend (CuPy).

CuPy is an optional dependency (``pip install lazygrad[gpu]``). When it
imports and the CUDA runtime reports at least one device, the generic kernels
are registered for `DeviceType.GPU`, each wrapped so that it runs under the
output device's context and finishes its GPU work before returning (the
evaluator sets the completion event right after the kernel returns, and
consumers on other streams rely on that event).

Without CuPy nothing is registered: GPU placements fail materialization with
`UnsupportedOperationError`, and GPU leaves cannot be created.
"""

from __future__ import annotations

from functools import wraps
from typing import Any
import logging

import numpy as np

from ...domain._errors import UnsupportedOperationError
from ...domain.device._device import Device, DeviceInfo, DeviceType
from ._kernels import register_array_kernels
from ._registry import default_registry

logger = logging.getLogger(__name__)

try:
    import cupy as cp

    _HAS_CUPY = True
except Exception:
    cp = None
    _HAS_CUPY = False


def _device_count() -> int:
    if not _HAS_CUPY:
        return 0
    try:
        return int(cp.cuda.runtime.getDeviceCount())
    except Exception as e:
        logger.warning("CuPy is installed but the CUDA runtime is unusable: %s", e)
        return 0


def gpu_available() -> bool:
    """Return True if CuPy is importable and at least one GPU is accessible."""
    return _device_count() > 0


def gpu_devices() -> list[DeviceInfo]:
    """
    Describe every visible GPU.

    Returns
    -------
    list[DeviceInfo]
        One entry per device with its name, total memory and compute
        capability. Empty when CuPy or a GPU is unavailable.
    """
    infos = []
    for i in range(_device_count()):
        props = cp.cuda.runtime.getDeviceProperties(i)
        name = props.get("name", b"")
        if isinstance(name, bytes):
            name = name.decode(errors="replace")
        infos.append(
            DeviceInfo(
                device=Device(f"gpu:{i}"),
                name=name,
                memory_bytes=int(props.get("totalGlobalMem", 0)),
                capability=f"{props.get('major', 0)}.{props.get('minor', 0)}",
                extra={"multiprocessors": int(props.get("multiProcessorCount", 0))},
            )
        )
    return infos


def _check_device(device: Device) -> None:
    if not _HAS_CUPY or device.index >= _device_count():
        raise UnsupportedOperationError("array", str(device))


def upload(buffer: np.ndarray, device: Device) -> Any:
    """
    Copy a host buffer to `device`.

    Raises
    ------
    UnsupportedOperationError
        If CuPy is missing or the device does not exist.
    """
    _check_device(device)
    with cp.cuda.Device(device.index):
        result = cp.asarray(buffer)
        cp.cuda.get_current_stream().synchronize()
    return result


def _on_device(kernel):
    @wraps(kernel)
    def wrapper(primitive, inputs, spec, device, out=None):
        with cp.cuda.Device(device.index):
            result = kernel(primitive, inputs, spec, device, out=out)
            cp.cuda.get_current_stream().synchronize()
        return result

    return wrapper


def _to_gpu(primitive, inputs, spec, device, out=None):
    (x,) = inputs
    result = cp.asarray(x, dtype=spec.dtype.numpy)
    if result is x:
        result = result.copy()
    return result


if gpu_available():
    register_array_kernels(
        default_registry, cp, DeviceType.GPU, backend="cupy", wrap=_on_device
    )
    default_registry.register(
        "to_device", DeviceType.GPU, _on_device(_to_gpu), backend="cupy"
    )
    logger.info("cupy backend registered for %d gpu(s)", _device_count())
