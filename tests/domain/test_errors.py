import unittest

from lazygrad.domain._errors import (
    ComputeError,
    CyclicGraphError,
    DTypeError,
    DeviceMismatchError,
    ShapeError,
    TreeStructureError,
    UnsupportedOperationError,
)


class TestErrorTaxonomy(unittest.TestCase):
    def test_construction_errors_subclass_builtin_types(self) -> None:
        self.assertTrue(issubclass(ShapeError, ValueError))
        self.assertTrue(issubclass(DTypeError, TypeError))
        self.assertTrue(issubclass(DeviceMismatchError, ValueError))

    def test_materialization_errors_are_runtime_errors(self) -> None:
        for cls in (UnsupportedOperationError, ComputeError, CyclicGraphError):
            with self.subTest(cls=cls.__name__):
                self.assertTrue(issubclass(cls, RuntimeError))

    def test_unsupported_operation_attributes(self) -> None:
        e = UnsupportedOperationError("matmul", "gpu:0")
        self.assertEqual(e.op, "matmul")
        self.assertEqual(e.device, "gpu:0")
        self.assertIn("matmul", str(e))
        self.assertIn("gpu:0", str(e))

    def test_compute_error_attributes(self) -> None:
        e = ComputeError(7, "exp", "out of memory")
        self.assertEqual(e.array_id, 7)
        self.assertEqual(e.primitive, "exp")
        self.assertEqual(str(e), "Failed to evaluate array #7 (exp): out of memory")
        self.assertEqual(str(ComputeError(1, "add")), "Failed to evaluate array #1 (add)")

    def test_device_mismatch_attributes(self) -> None:
        e = DeviceMismatchError("cpu", "gpu:0")
        self.assertEqual((e.device_a, e.device_b), ("cpu", "gpu:0"))

    def test_cyclic_and_tree_errors(self) -> None:
        self.assertEqual(CyclicGraphError(3).array_id, 3)
        e = TreeStructureError("layers.0.w")
        self.assertIsInstance(e, KeyError)
        self.assertEqual(e.path, "layers.0.w")
        self.assertIn("layers.0.w", str(e))


if __name__ == "__main__":
    unittest.main()
