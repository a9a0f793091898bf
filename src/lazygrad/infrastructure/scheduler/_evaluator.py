"""
Evaluator: turns pending arrays into materialized storage.

Planning (under the evaluator lock, on the calling thread)
----------------------------------------------------------
1. Collect the arrays reachable from the targets that still need evaluation.
   Materialized arrays, and arrays already in flight on a stream, act as
   leaves and cut the traversal.
2. Order them topologically (Kahn's algorithm, lowest creation id first).
3. Resolve a kernel for every planned array. A missing
   ``(primitive, device)`` pair raises `UnsupportedOperationError` here,
   before anything is enqueued, so a failed plan leaves no partial storage.
4. Enqueue one task per array on its stream and attach a completion `Event`.

Execution (on stream worker threads)
------------------------------------
A task first waits on the events of inputs produced on *other* streams
(same-stream inputs are ordered by the queue itself), then runs the kernel.
Non-aliasing kernels are offered a recycled buffer from the pool; aliasing
kernels (reshape, transpose, broadcast, stop_gradient) wrap their result as
a view that keeps the input storage alive. Finally the task attaches the
storage and sets the event. A failure sets the event with a `ComputeError`
chained to the backend exception; consumers of a failed array fail with a
`ComputeError` of their own and stay unmaterialized, ready to be retried.

Every task only ever waits on tasks enqueued before it, so the scheme cannot
deadlock.
"""

from __future__ import annotations

from functools import partial
from typing import Iterable, Optional, Sequence, Union
import logging
import threading

from ...config import get_config
from ...domain._errors import ComputeError
from ..array._array import Array
from ..array._graph import topological_order
from ..array._storage import BufferPool, Storage, default_buffer_pool
from ..backends import default_registry
from ..backends._registry import KernelEntry, KernelRegistry
from ._stream import Event, Stream, default_stream

logger = logging.getLogger(__name__)

Targets = Union[Array, Iterable[Array]]


def _as_targets(targets: Targets) -> list[Array]:
    if isinstance(targets, Array):
        return [targets]
    targets = list(targets)
    for t in targets:
        if not isinstance(t, Array):
            raise TypeError(f"materialize expects Arrays, got {type(t).__name__!r}")
    return targets


def _in_flight(a: Array) -> bool:
    event = a._event
    return event is not None and not event.is_set()


def _needs_eval(a: Array) -> bool:
    if a._storage is not None or _in_flight(a):
        return False
    # storage is attached before the event is set; re-read it in case the
    # task completed between the two checks
    return a._storage is None


def stream_of(a: Array) -> Stream:
    """Return the stream an array's kernel runs (or ran) on."""
    return a.stream if a.stream is not None else default_stream(a.device)


class Evaluator:
    """
    Schedules pending arrays onto device streams.

    Parameters
    ----------
    registry : Optional[KernelRegistry]
        Kernel lookup. Defaults to the process-wide registry.
    pool : Optional[BufferPool]
        Recycled-buffer source for kernel outputs. Defaults to the
        process-wide pool.

    Notes
    -----
    Concurrent calls are safe: planning and enqueueing are serialized by an
    internal lock, and arrays already in flight are never scheduled twice.
    """

    def __init__(
        self,
        registry: Optional[KernelRegistry] = None,
        pool: Optional[BufferPool] = None,
    ) -> None:
        self._registry = registry if registry is not None else default_registry
        self._pool = pool if pool is not None else default_buffer_pool()
        self._lock = threading.Lock()
        self._counter_lock = threading.Lock()
        self._dispatch_count = 0

    # ----------------------------
    # Introspection
    # ----------------------------
    @property
    def dispatch_count(self) -> int:
        """Number of backend kernel invocations so far."""
        return self._dispatch_count

    def stats(self) -> dict[str, int]:
        return {
            "dispatch_count": self._dispatch_count,
            "pool_hits": self._pool.hits,
            "pool_misses": self._pool.misses,
            "pooled_buffers": len(self._pool),
            "pooled_bytes": self._pool.bytes_held,
        }

    # ----------------------------
    # Planning
    # ----------------------------
    def plan(self, targets: Targets) -> list[Array]:
        """
        Return the arrays `materialize(targets)` would evaluate, in order.

        Raises
        ------
        CyclicGraphError
            If the pending graph contains a cycle.
        """
        targets = _as_targets(targets)
        decided: dict[int, bool] = {}

        def expand(a: Array) -> bool:
            if a.id not in decided:
                decided[a.id] = _needs_eval(a)
            return decided[a.id]

        return [a for a in topological_order(targets, expand) if expand(a)]

    def _enqueue(
        self, targets: list[Array], retain_graph: bool
    ) -> tuple[list[Event], list[Event]]:
        with self._lock:
            planned = self.plan(targets)
            entries = [
                self._registry.resolve(
                    a.primitive, [x.spec for x in a.inputs], a.device
                )
                for a in planned
            ]
            events = []
            for a, entry in zip(planned, entries):
                stream = stream_of(a)
                waits = [
                    x._event
                    for x in a.inputs
                    if _in_flight(x) and stream_of(x) != stream
                ]
                event = Event()
                a._event = event
                events.append(event)
                stream.submit(
                    partial(self._run, a, entry, waits, event, retain_graph)
                )
            if planned:
                logger.debug(
                    "enqueued %d array(s) for %d target(s)", len(planned), len(targets)
                )
            target_events = []
            for t in targets:
                if t._event is not None:
                    target_events.append(t._event)
                else:
                    done = Event()
                    done.set()
                    target_events.append(done)
        return target_events, events

    # ----------------------------
    # Execution
    # ----------------------------
    def _run(
        self,
        array: Array,
        entry: KernelEntry,
        waits: Sequence[Event],
        event: Event,
        retain_graph: bool,
    ) -> None:
        error: Optional[BaseException] = None
        try:
            for w in waits:
                w.wait()
            self._execute(array, entry)
            if not retain_graph:
                array._drop_pending()
        except ComputeError as e:
            error = e
        except Exception as e:
            error = ComputeError(array.id, array.primitive.name, str(e))
            error.__cause__ = e
        if error is not None:
            logger.debug("evaluation of array #%d failed: %s", array.id, error)
        event.set(error)

    def _execute(self, array: Array, entry: KernelEntry) -> None:
        primitive = array.primitive
        inputs = array.inputs
        for x in inputs:
            if x._storage is None:
                upstream = x._event.error if x._event is not None else None
                raise ComputeError(
                    array.id, primitive.name, f"input #{x.id} is not materialized"
                ) from upstream

        spec = array.spec
        out = None
        if not primitive.aliases_input and spec.size > 0:
            out = self._pool.acquire(spec.shape, spec.dtype, spec.device)

        try:
            result = entry.kernel(
                primitive, [x._buffer() for x in inputs], spec, spec.device, out=out
            )
        except Exception as e:
            if out is not None:
                self._pool.release(out, spec.device)
            raise ComputeError(
                array.id, primitive.name, str(e) or type(e).__name__
            ) from e
        finally:
            with self._counter_lock:
                self._dispatch_count += 1

        if out is not None and result is not out:
            self._pool.release(out, spec.device)

        if primitive.aliases_input:
            storage = inputs[0]._storage.view(result)
        else:
            storage = Storage(buffer=result, device=spec.device, pool=self._pool)
        array._set_storage(storage)

    # ----------------------------
    # Public API
    # ----------------------------
    def materialize_async(
        self, targets: Targets, *, retain_graph: Optional[bool] = None
    ) -> list[Event]:
        """
        Enqueue the evaluation of `targets` without waiting.

        Returns
        -------
        list[Event]
            One completion event per target, in target order.
        """
        if retain_graph is None:
            retain_graph = get_config().retain_graph
        target_events, _ = self._enqueue(_as_targets(targets), retain_graph)
        return target_events

    def materialize(
        self, targets: Targets, *, retain_graph: Optional[bool] = None
    ) -> None:
        """
        Materialize `targets` and everything they depend on.

        Parameters
        ----------
        targets : Array | Iterable[Array]
            Arrays to evaluate.
        retain_graph : Optional[bool]
            Keep pending records of evaluated arrays so they remain
            differentiable. When False, records are dropped as arrays
            complete, releasing consumed intermediates to the buffer pool.
            Defaults to `RuntimeConfig.retain_graph`.

        Raises
        ------
        CyclicGraphError
            If the pending graph contains a cycle.
        UnsupportedOperationError
            If a planned primitive has no kernel for its device.
        ComputeError
            If a kernel fails; the earliest failure in schedule order is
            raised, with the backend exception as its cause.
        """
        if retain_graph is None:
            retain_graph = get_config().retain_graph
        target_events, events = self._enqueue(_as_targets(targets), retain_graph)
        for ev in events:
            ev.wait()
        for ev in target_events:
            ev.wait()
        for ev in events + target_events:
            if ev.error is not None:
                raise ev.error

    def wait(self, targets: Targets) -> None:
        """
        Block the calling thread until `targets` are materialized.

        Arrays that were never scheduled are scheduled first.
        """
        self.materialize(targets)


_default_evaluator = Evaluator()


def default_evaluator() -> Evaluator:
    """Return the process-wide evaluator."""
    return _default_evaluator


def materialize(targets: Targets, *, retain_graph: Optional[bool] = None) -> None:
    _default_evaluator.materialize(targets, retain_graph=retain_graph)


def materialize_async(
    targets: Targets, *, retain_graph: Optional[bool] = None
) -> list[Event]:
    return _default_evaluator.materialize_async(targets, retain_graph=retain_graph)


def wait(targets: Targets) -> None:
    _default_evaluator.wait(targets)
