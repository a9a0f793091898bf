import threading
import time
import unittest

import numpy as np

import lazygrad as lg
from lazygrad import Device, DeviceType
from lazygrad.infrastructure.array._array import Array
from lazygrad.infrastructure.backends import default_registry
from lazygrad.infrastructure.primitives import ElementwiseUnary
from lazygrad.infrastructure.scheduler._evaluator import stream_of
from lazygrad.infrastructure.scheduler._stream import Event, current_stream


class _Slow(ElementwiseUnary):
    name = "test_slow"

    def vjp(self, cotangent, primals, output):
        return [cotangent]

    def jvp(self, primals, tangents, output):
        return tangents[0]


def _slow_copy(primitive, inputs, spec, device, out=None):
    time.sleep(0.05)
    return np.array(inputs[0], copy=True)


class TestEvent(unittest.TestCase):
    def test_set_and_wait(self) -> None:
        ev = Event()
        self.assertFalse(ev.is_set())
        self.assertFalse(ev.wait(timeout=0.01))
        threading.Timer(0.01, ev.set).start()
        self.assertTrue(ev.wait(timeout=5))
        self.assertFalse(ev.failed)

    def test_error_is_recorded(self) -> None:
        ev = Event()
        ev.set(ValueError("x"))
        self.assertTrue(ev.failed)
        self.assertIsInstance(ev.error, ValueError)


class TestStreams(unittest.TestCase):
    def test_default_stream_is_shared(self) -> None:
        self.assertIs(lg.default_stream("cpu"), lg.default_stream(Device("cpu")))
        self.assertEqual(lg.default_stream("cpu").index, 0)

    def test_new_stream_is_distinct(self) -> None:
        s = lg.new_stream("cpu")
        self.assertNotEqual(s, lg.default_stream("cpu"))
        self.assertEqual(s.device, Device("cpu"))

    def test_stream_runs_work_in_order(self) -> None:
        s = lg.new_stream("cpu")
        seen = []
        for i in range(5):
            s.submit(lambda i=i: seen.append(i))
        s.synchronize()
        self.assertEqual(seen, [0, 1, 2, 3, 4])

    def test_scope_routes_new_arrays(self) -> None:
        s = lg.new_stream("cpu")
        a = lg.array([1.0, 2.0])
        with lg.stream_scope(s):
            self.assertIs(current_stream(Device("cpu")), s)
            self.assertIsNone(current_stream(Device("gpu:0")))
            b = a * 2.0
        c = a * 3.0
        self.assertIs(b.stream, s)
        self.assertIsNone(c.stream)
        self.assertIs(stream_of(c), lg.default_stream("cpu"))
        self.assertIsNone(current_stream(Device("cpu")))

    def test_nested_scopes(self) -> None:
        s1 = lg.new_stream("cpu")
        s2 = lg.new_stream("cpu")
        with lg.stream_scope(s1):
            with lg.stream_scope(s2):
                self.assertIs(current_stream(Device("cpu")), s2)
            self.assertIs(current_stream(Device("cpu")), s1)

    def test_cross_stream_dependency_waits_for_producer(self) -> None:
        default_registry.register("test_slow", DeviceType.CPU, _slow_copy)
        self.addCleanup(default_registry.unregister, "test_slow", DeviceType.CPU, _slow_copy)

        producer = lg.new_stream("cpu")
        consumer = lg.new_stream("cpu")
        a = lg.array([1.0, 2.0, 3.0])
        with lg.stream_scope(producer):
            x = Array._apply(_Slow(), [a])
        with lg.stream_scope(consumer):
            y = x + 1.0
        lg.materialize([y])
        np.testing.assert_array_equal(y.to_numpy(), [2.0, 3.0, 4.0])
        self.assertIs(x.stream, producer)
        self.assertIs(y.stream, consumer)

    def test_independent_streams_both_complete(self) -> None:
        s1 = lg.new_stream("cpu")
        s2 = lg.new_stream("cpu")
        a = lg.array(np.arange(4, dtype=np.float32))
        with lg.stream_scope(s1):
            u = a * 2.0
        with lg.stream_scope(s2):
            v = a * 3.0
        w = u + v
        lg.materialize([w])
        np.testing.assert_array_equal(w.to_numpy(), np.arange(4, dtype=np.float32) * 5)

    def test_synchronize_all(self) -> None:
        a = lg.array([1.0])
        lg.materialize_async([a + 1.0])
        lg.synchronize()
        lg.synchronize(lg.default_stream("cpu"))


if __name__ == "__main__":
    unittest.main()
