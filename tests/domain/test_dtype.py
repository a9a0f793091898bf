import unittest

import numpy as np

from lazygrad.domain._dtype import DType


class TestDType(unittest.TestCase):
    def test_from_any_accepts_numpy_types_and_names(self) -> None:
        self.assertIs(DType.from_any(np.float32), DType.float32)
        self.assertIs(DType.from_any(np.dtype("int64")), DType.int64)
        self.assertIs(DType.from_any("float16"), DType.float16)
        self.assertIs(DType.from_any(bool), DType.bool_)
        self.assertIs(DType.from_any(DType.int32), DType.int32)

    def test_from_any_rejects_unsupported(self) -> None:
        with self.assertRaises(TypeError):
            DType.from_any(np.complex64)
        with self.assertRaises(TypeError):
            DType.from_any("not-a-dtype")

    def test_properties(self) -> None:
        self.assertEqual(DType.float64.itemsize, 8)
        self.assertEqual(DType.int32.itemsize, 4)
        self.assertEqual(DType.float32.numpy, np.dtype(np.float32))
        self.assertTrue(DType.float16.is_floating)
        self.assertFalse(DType.int64.is_floating)
        self.assertFalse(DType.bool_.is_floating)
        self.assertEqual(str(DType.bool_), "bool")


if __name__ == "__main__":
    unittest.main()
