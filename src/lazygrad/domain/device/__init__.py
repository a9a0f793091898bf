from ._device import Device, DeviceInfo, DeviceType
from ._device_protocol import DeviceLike

__all__ = [
    Device.__name__,
    DeviceInfo.__name__,
    DeviceLike.__name__,
    DeviceType.__name__,
]
