import unittest

from lazygrad.domain.device._device import Device, DeviceInfo, DeviceType
from lazygrad.domain.device._device_protocol import DeviceLike


class TestDevice(unittest.TestCase):
    def test_parse_cpu(self) -> None:
        d = Device("cpu")
        self.assertIs(d.type, DeviceType.CPU)
        self.assertIsNone(d.index)
        self.assertTrue(d.is_cpu())
        self.assertFalse(d.is_gpu())
        self.assertEqual(str(d), "cpu")

    def test_parse_gpu_index(self) -> None:
        d = Device("gpu:3")
        self.assertIs(d.type, DeviceType.GPU)
        self.assertEqual(d.index, 3)
        self.assertTrue(d.is_gpu())
        self.assertEqual(str(d), "gpu:3")
        self.assertEqual(repr(d), "Device('gpu:3')")

    def test_invalid_strings_raise(self) -> None:
        for bad in ("cuda:0", "gpu", "gpu:-1", "GPU:0", "cpu:0", ""):
            with self.subTest(device=bad):
                with self.assertRaises(ValueError):
                    Device(bad)

    def test_parse_accepts_device_and_rejects_other_types(self) -> None:
        d = Device("gpu:1")
        self.assertIs(Device.parse(d), d)
        self.assertEqual(Device.parse("gpu:1"), d)
        with self.assertRaises(TypeError):
            Device.parse(0)

    def test_equality_and_hash(self) -> None:
        self.assertEqual(Device("gpu:0"), Device("gpu:0"))
        self.assertNotEqual(Device("gpu:0"), Device("gpu:1"))
        self.assertNotEqual(Device("cpu"), Device("gpu:0"))
        self.assertEqual(len({Device("cpu"), Device("cpu"), Device("gpu:0")}), 2)

    def test_satisfies_device_like(self) -> None:
        self.assertIsInstance(Device("cpu"), DeviceLike)


class TestDeviceInfo(unittest.TestCase):
    def test_extra_is_ignored_by_equality(self) -> None:
        a = DeviceInfo(device=Device("cpu"), name="host", extra={"cores": 8})
        b = DeviceInfo(device=Device("cpu"), name="host", extra={"cores": 4})
        self.assertEqual(a, b)
        self.assertIsNone(a.memory_bytes)


if __name__ == "__main__":
    unittest.main()
