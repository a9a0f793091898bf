"""
Execution streams and completion events.

A `Stream` is an ordered execution queue bound to one device. Work enqueued
on the same stream runs in enqueue order on the stream's single worker
thread. Work on different streams may run concurrently; ordering across
streams is established only through `Event`s: a task that consumes an array
produced on another stream blocks its own worker on the producer's event
(never by polling) before it runs.

Streams are created lazily: `default_stream(device)` returns the device's
default stream, `new_stream(device)` adds another one. `stream_scope` routes
arrays built inside a `with` block to a chosen stream.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union
import logging
import threading

from ...domain.device._device import Device

logger = logging.getLogger(__name__)


class Event:
    """
    One-shot completion signal.

    Attributes
    ----------
    error : Optional[BaseException]
        Failure recorded by the producing task, if any.
    """

    __slots__ = ("_flag", "error")

    def __init__(self) -> None:
        self._flag = threading.Event()
        self.error: Optional[BaseException] = None

    def set(self, error: Optional[BaseException] = None) -> None:
        self.error = error
        self._flag.set()

    def is_set(self) -> bool:
        return self._flag.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block the calling thread until the event is set."""
        return self._flag.wait(timeout)

    @property
    def failed(self) -> bool:
        return self._flag.is_set() and self.error is not None


class Stream:
    """
    In-order execution queue bound to a device.

    Parameters
    ----------
    device : Device
        Device whose kernels run on this stream.
    index : int
        Stream number, unique per device.
    """

    def __init__(self, device: Device, index: int) -> None:
        self.device = device
        self.index = index
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"lazygrad-{device}-s{index}"
        )

    def submit(self, fn: Callable[[], None]) -> None:
        """Enqueue `fn` behind all previously submitted work."""
        self._executor.submit(fn)

    def synchronize(self) -> None:
        """Block the calling thread until all work enqueued so far has run."""
        marker = Event()
        self._executor.submit(marker.set)
        marker.wait()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stream):
            return NotImplemented
        return (self.device, self.index) == (other.device, other.index)

    def __hash__(self) -> int:
        return hash((self.device, self.index))

    def __repr__(self) -> str:
        return f"Stream(device={self.device}, index={self.index})"


_registry_lock = threading.Lock()
_streams: dict[Device, list[Stream]] = {}


def default_stream(device: Union[str, Device]) -> Stream:
    """Return the default stream of `device`, creating it on first use."""
    device = Device.parse(device)
    with _registry_lock:
        streams = _streams.setdefault(device, [])
        if not streams:
            streams.append(Stream(device, 0))
            logger.debug("created default stream for %s", device)
        return streams[0]


def new_stream(device: Union[str, Device]) -> Stream:
    """Create an additional stream on `device`."""
    device = Device.parse(device)
    with _registry_lock:
        streams = _streams.setdefault(device, [])
        if not streams:
            streams.append(Stream(device, 0))
        stream = Stream(device, len(streams))
        streams.append(stream)
    logger.debug("created %r", stream)
    return stream


def synchronize(stream: Optional[Stream] = None) -> None:
    """
    Wait for queued work to finish.

    Parameters
    ----------
    stream : Optional[Stream]
        Stream to drain. When omitted, every stream created so far is
        drained.
    """
    if stream is not None:
        stream.synchronize()
        return
    with _registry_lock:
        all_streams = [s for streams in _streams.values() for s in streams]
    for s in all_streams:
        s.synchronize()


_scope = threading.local()


@contextmanager
def stream_scope(stream: Stream) -> Iterator[Stream]:
    """
    Route arrays built in this block (on the stream's device) to `stream`.

    Scopes nest; the innermost scope wins. The scope is thread-local.
    """
    stack = getattr(_scope, "stack", None)
    if stack is None:
        stack = _scope.stack = []
    stack.append(stream)
    try:
        yield stream
    finally:
        stack.pop()


def current_stream(device: Device) -> Optional[Stream]:
    """
    Return the innermost scoped stream bound to `device`, if any.

    Arrays without an explicit stream run on the device's default stream.
    """
    for stream in reversed(getattr(_scope, "stack", ())):
        if stream.device == device:
            return stream
    return None
