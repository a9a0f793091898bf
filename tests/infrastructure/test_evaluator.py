import threading
import unittest

import numpy as np

import lazygrad as lg
from lazygrad import DeviceType
from lazygrad.domain._errors import (
    ComputeError,
    CyclicGraphError,
    UnsupportedOperationError,
)
from lazygrad.infrastructure.array._array import Array
from lazygrad.infrastructure.array._array_context import Pending
from lazygrad.infrastructure.backends import default_registry
from lazygrad.infrastructure.primitives import ElementwiseUnary


class _Flaky(ElementwiseUnary):
    name = "test_flaky"

    def vjp(self, cotangent, primals, output):
        return [cotangent]

    def jvp(self, primals, tangents, output):
        return tangents[0]


class _CpuOnly(ElementwiseUnary):
    name = "test_cpu_only"

    def vjp(self, cotangent, primals, output):
        return [cotangent]

    def jvp(self, primals, tangents, output):
        return tangents[0]


def _double(primitive, inputs, spec, device, out=None):
    return np.multiply(inputs[0], 2, out=out)


def _dispatches() -> int:
    return lg.default_evaluator().dispatch_count


def _pair():
    a = lg.array([[1.0, 2.0], [3.0, 4.0]])
    b = lg.array([[5.0, 6.0], [7.0, 8.0]])
    return a, b


class TestMaterialize(unittest.TestCase):
    def test_values(self) -> None:
        a, b = _pair()
        c = a * b + a
        lg.materialize([c])
        self.assertTrue(c.is_materialized)
        np.testing.assert_array_equal(
            c.to_numpy(), np.array([[6.0, 14.0], [24.0, 36.0]], dtype=np.float32)
        )

    def test_second_materialize_dispatches_nothing(self) -> None:
        a, b = _pair()
        c = a * b + a
        lg.materialize([c])
        before = _dispatches()
        lg.materialize([c])
        c.eval()
        c.to_numpy()
        self.assertEqual(_dispatches(), before)

    def test_shared_subexpression_runs_once(self) -> None:
        a, b = _pair()
        d = a * b
        e = d + d
        f = d * 2
        planned = lg.default_evaluator().plan([e, f])
        self.assertEqual(len(planned), 4)
        self.assertEqual(sum(1 for x in planned if x is d), 1)
        before = _dispatches()
        lg.materialize([e, f])
        self.assertEqual(_dispatches() - before, 4)
        np.testing.assert_array_equal(e.to_numpy(), f.to_numpy())

    def test_plan_is_dependency_ordered_and_deterministic(self) -> None:
        a, b = _pair()
        x = a + b
        y = a - b
        z = x * y
        plan = lg.default_evaluator().plan([z])
        self.assertEqual([p.id for p in plan], [x.id, y.id, z.id])
        self.assertEqual(
            [p.id for p in lg.default_evaluator().plan([z])], [x.id, y.id, z.id]
        )

    def test_materialized_arrays_cut_the_plan(self) -> None:
        a, b = _pair()
        x = a + b
        lg.materialize([x])
        y = x * 3.0
        plan = lg.default_evaluator().plan([y])
        self.assertNotIn(x.id, [p.id for p in plan])

    def test_empty_and_leaf_targets(self) -> None:
        a, _ = _pair()
        before = _dispatches()
        lg.materialize([])
        lg.materialize(a)
        self.assertEqual(_dispatches(), before)

    def test_rejects_non_arrays(self) -> None:
        with self.assertRaises(TypeError):
            lg.materialize([np.zeros(2)])

    def test_retain_graph_false_drops_pending(self) -> None:
        a, b = _pair()
        m = a * b
        c = m + a
        lg.materialize([c], retain_graph=False)
        self.assertIsNone(c.primitive)
        self.assertIsNone(m.primitive)
        self.assertEqual(c.inputs, ())
        np.testing.assert_array_equal(c.to_numpy(), [[6.0, 14.0], [24.0, 36.0]])

    def test_retain_graph_true_keeps_pending(self) -> None:
        a, b = _pair()
        c = a * b + a
        lg.materialize([c], retain_graph=True)
        self.assertEqual(c.primitive.name, "add")

    def test_async_then_wait(self) -> None:
        a, b = _pair()
        c = a @ b
        events = lg.materialize_async([c])
        self.assertEqual(len(events), 1)
        events[0].wait()
        self.assertTrue(c.is_materialized)
        self.assertFalse(events[0].failed)
        d = c + 1.0
        lg.wait([d])
        np.testing.assert_allclose(d.to_numpy(), np.array([[20.0, 23.0], [44.0, 51.0]]))

    def test_concurrent_materialize_over_shared_subgraph(self) -> None:
        a = lg.array([[0.5, -1.0], [2.0, 0.0]])
        shared = lg.exp(a) * 2.0
        targets = [shared + float(i) for i in range(32)]
        expected = np.exp(a.to_numpy()) * 2.0
        planned = len(lg.default_evaluator().plan(targets))
        errors = []

        def run(t) -> None:
            try:
                lg.materialize([t])
            except Exception as e:
                errors.append(e)

        before = _dispatches()
        threads = [threading.Thread(target=run, args=(t,)) for t in targets]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        lg.synchronize()

        self.assertEqual(errors, [])
        self.assertEqual(_dispatches() - before, planned)
        self.assertTrue(shared.is_materialized)
        for i, t in enumerate(targets):
            np.testing.assert_allclose(t.to_numpy(), expected + i, rtol=1e-6)

    def test_stats(self) -> None:
        stats = lg.default_evaluator().stats()
        for key in ("dispatch_count", "pool_hits", "pool_misses", "pooled_buffers", "pooled_bytes"):
            self.assertIn(key, stats)


class TestMaterializeErrors(unittest.TestCase):
    def test_cycle_is_reported(self) -> None:
        a, _ = _pair()
        b = a + 1.0
        c = b * 2.0
        b._pending = Pending(b.primitive, [c, b.inputs[1]])
        before = _dispatches()
        with self.assertRaises(CyclicGraphError):
            lg.materialize([c])
        self.assertEqual(_dispatches(), before)
        self.assertFalse(c.is_materialized)

    def test_unsupported_device_leaves_no_partial_storage(self) -> None:
        default_registry.register("test_cpu_only", DeviceType.CPU, _double)
        self.addCleanup(default_registry.unregister, "test_cpu_only", DeviceType.CPU, _double)

        a, _ = _pair()
        x = a + 1.0
        on_gpu = lg.to_device(x, "gpu:7")
        y = Array._apply(_CpuOnly(), [on_gpu])
        before = _dispatches()
        with self.assertRaises(UnsupportedOperationError) as ctx:
            lg.materialize([y])
        self.assertEqual(ctx.exception.device, "gpu:7")
        self.assertEqual(_dispatches(), before)
        for arr in (x, on_gpu, y):
            self.assertFalse(arr.is_materialized)

        # rebuilding on a supported device succeeds
        z = Array._apply(_CpuOnly(), [x])
        np.testing.assert_array_equal(z.to_numpy(), [[4.0, 6.0], [8.0, 10.0]])

    def test_kernel_failure_raises_compute_error_and_can_be_retried(self) -> None:
        state = {"fail": True}

        def flaky(primitive, inputs, spec, device, out=None):
            if state["fail"]:
                raise FloatingPointError("device fault")
            return np.multiply(inputs[0], 2, out=out)

        default_registry.register("test_flaky", DeviceType.CPU, flaky)
        self.addCleanup(default_registry.unregister, "test_flaky", DeviceType.CPU, flaky)

        a, b = _pair()
        ok = a + b
        y = Array._apply(_Flaky(), [a])
        z = y + 1.0
        with self.assertRaises(ComputeError) as ctx:
            lg.materialize([ok, z])
        err = ctx.exception
        self.assertEqual(err.array_id, y.id)
        self.assertEqual(err.primitive, "test_flaky")
        self.assertIsInstance(err.__cause__, FloatingPointError)
        self.assertTrue(ok.is_materialized)
        self.assertFalse(y.is_materialized)
        self.assertFalse(z.is_materialized)

        state["fail"] = False
        lg.materialize([z])
        np.testing.assert_array_equal(z.to_numpy(), [[3.0, 5.0], [7.0, 9.0]])

    def test_failed_event_carries_error(self) -> None:
        def broken(primitive, inputs, spec, device, out=None):
            raise RuntimeError("boom")

        default_registry.register("test_flaky", DeviceType.CPU, broken)
        self.addCleanup(default_registry.unregister, "test_flaky", DeviceType.CPU, broken)

        a, _ = _pair()
        y = Array._apply(_Flaky(), [a])
        (event,) = lg.materialize_async([y])
        event.wait()
        self.assertTrue(event.failed)
        self.assertIsInstance(event.error, ComputeError)


if __name__ == "__main__":
    unittest.main()
