"""
Device abstraction utilities.

This module defines lightweight abstractions for representing computation
devices (CPU and GPUs) in a backend-agnostic way. It provides:

- `DeviceType`: an enumeration of supported device categories
- `Device`: a concrete device descriptor that validates and normalizes
  user-facing device strings such as "cpu" or "gpu:0"
- `DeviceInfo`: capability/memory metadata reported by a backend

Devices are placement descriptors only. They never allocate or manage
backend resources; hardware discovery is delegated to the backends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
import re


class DeviceType(Enum):
    """
    Enumeration of supported device categories.

    This enum represents the *type* of a computation device, independent of
    any specific device index or backend implementation. Kernels are
    registered per device type.

    Attributes
    ----------
    CPU : DeviceType
        Central Processing Unit.
    GPU : DeviceType
        Graphics Processing Unit.
    """

    CPU = "cpu"
    GPU = "gpu"


class Device:
    """
    Concrete computation device descriptor.

    This class encapsulates a normalized representation of a computation device,
    including its type (CPU or GPU) and, for GPU devices, a device index
    (e.g., gpu:0).

    Parameters
    ----------
    device : str
        Device identifier string. Must be either:
        - "cpu"
        - "gpu:<index>", where <index> is a non-negative integer

    Raises
    ------
    ValueError
        If the provided device string does not match the supported formats.

    Notes
    -----
    `__slots__` is used to prevent dynamic attribute creation and reduce
    per-instance memory overhead.
    """

    __slots__ = ("type", "index")

    _GPU_PATTERN = re.compile(r"^gpu:(\d+)$")

    def __init__(self, device: str):
        if device == "cpu":
            self.type = DeviceType.CPU
            self.index = None
        else:
            m = self._GPU_PATTERN.match(device)
            if not m:
                raise ValueError(
                    f"Invalid device '{device}'. Expected 'cpu' or 'gpu:<index>'"
                )
            self.type = DeviceType.GPU
            self.index = int(m.group(1))

    @classmethod
    def parse(cls, device: Union[str, "Device"]) -> "Device":
        """
        Normalize a device string or descriptor into a `Device`.

        Parameters
        ----------
        device : str | Device
            Device identifier or an existing descriptor.

        Returns
        -------
        Device
            The descriptor itself when `device` is already a `Device`,
            otherwise a newly parsed one.
        """
        if isinstance(device, Device):
            return device
        if not isinstance(device, str):
            raise TypeError(f"device must be a str or Device, got {type(device)!r}")
        return cls(device)

    def __str__(self) -> str:
        return "cpu" if self.type is DeviceType.CPU else f"gpu:{self.index}"

    def __repr__(self) -> str:
        return f"Device('{self}')"

    def __eq__(self, other: object) -> bool:
        """
        Compare two Device objects for semantic equality.

        Devices are considered equal if they represent the same device type
        and (for GPU devices) the same device index.
        """
        if not isinstance(other, Device):
            return NotImplemented
        return (self.type, self.index) == (other.type, other.index)

    def __hash__(self) -> int:
        return hash((self.type, self.index))

    def is_cpu(self) -> bool:
        """
        Check whether this device represents a CPU.

        Returns
        -------
        bool
            True if the device type is CPU, False otherwise.
        """
        return self.type is DeviceType.CPU

    def is_gpu(self) -> bool:
        """
        Check whether this device represents a GPU.

        Returns
        -------
        bool
            True if the device type is GPU, False otherwise.
        """
        return self.type is DeviceType.GPU


@dataclass(frozen=True)
class DeviceInfo:
    """
    Metadata describing an available device.

    Attributes
    ----------
    device : Device
        Placement descriptor.
    name : str
        Human-readable device name reported by the backend.
    memory_bytes : Optional[int]
        Total device memory, when the backend reports it.
    capability : Optional[str]
        Backend-specific capability string (e.g., compute capability "8.6").
    extra : dict
        Any additional backend-reported properties.
    """

    device: Device
    name: str
    memory_bytes: Optional[int] = None
    capability: Optional[str] = None
    extra: dict = field(default_factory=dict, compare=False)
