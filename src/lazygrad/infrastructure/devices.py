"""
Device enumeration and default placement.

The runtime does not discover hardware itself: the CPU is always present and
GPUs are reported by the CuPy runtime through the GPU backend.
"""

from __future__ import annotations

import os
import platform
from typing import Union

from ..config import get_config, set_config
from ..domain.device._device import Device, DeviceInfo
from .backends._gpu import gpu_devices


def _cpu_info() -> DeviceInfo:
    return DeviceInfo(
        device=Device("cpu"),
        name=platform.processor() or platform.machine() or "cpu",
        extra={"cores": os.cpu_count() or 1},
    )


def available_devices() -> list[DeviceInfo]:
    """
    List the devices arrays can be placed on.

    Returns
    -------
    list[DeviceInfo]
        The CPU first, followed by every visible GPU.
    """
    return [_cpu_info(), *gpu_devices()]


def default_device() -> Device:
    """Return the placement used by factories called without `device`."""
    return Device.parse(get_config().default_device)


def set_default_device(device: Union[str, Device]) -> Device:
    """
    Change the default placement.

    Raises
    ------
    ValueError
        If `device` is not a valid device identifier.
    """
    device = Device.parse(device)
    set_config(default_device=str(device))
    return device
