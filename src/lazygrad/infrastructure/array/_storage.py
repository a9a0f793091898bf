"""
Storage and buffer lifetime management.

This module defines `Storage`, a reference-counted wrapper around a single
backend buffer (a NumPy ndarray on CPU, a CuPy ndarray on GPU), and
`BufferPool`, the recycling area that released buffers are donated to.

Core Concepts
-------------
- **Owned storage**:
    A root storage owns its buffer. When the last reference is released the
    buffer is donated to the buffer pool (if it is writable, contiguous and
    the pool has room) so that a later kernel output of matching
    shape/dtype/device can reuse it.

- **Views**:
    Aliasing primitives (reshape, broadcast, stop_gradient) produce child
    storages through `Storage.view`. A child holds one reference on its
    parent, so the parent buffer is never donated while any view is alive.

- **Borrowed storage**:
    Buffers the runtime does not own (`owned=False`) are never donated.

- **Reference counting**:
    The count starts at one for the array that created the storage. Each
    array attaches a `weakref.finalize` that calls `decref` when the array
    is garbage-collected. Donation happens exactly when the count reaches
    zero, which is the sole rule governing buffer reuse.

Thread Safety
-------------
Reference count updates and pool bookkeeping are protected by locks, since
kernels run on stream worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional
import logging
import threading

from ...config import get_config
from ...domain._dtype import DType
from ...domain.device._device import Device

logger = logging.getLogger(__name__)


def _is_reusable(buffer: Any) -> bool:
    flags = getattr(buffer, "flags", None)
    if flags is None:
        return False
    if not getattr(flags, "c_contiguous", False):
        return False
    return bool(getattr(flags, "writeable", True))


class BufferPool:
    """
    Free-list of released buffers keyed by (shape, dtype, device).

    Parameters
    ----------
    limit_bytes : Optional[int]
        Maximum number of bytes held. Defaults to
        `RuntimeConfig.pool_limit_bytes` at release time.

    Notes
    -----
    Buffers enter the pool only through `Storage.decref` reaching zero, so a
    pooled buffer is never reachable from a live array.
    """

    def __init__(self, limit_bytes: Optional[int] = None) -> None:
        self._limit_bytes = limit_bytes
        self._free: dict[tuple, list[Any]] = {}
        self._bytes_held = 0
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(shape: tuple[int, ...], dtype_name: str, device: Device) -> tuple:
        return (tuple(int(d) for d in shape), dtype_name, device)

    @property
    def limit_bytes(self) -> int:
        if self._limit_bytes is not None:
            return self._limit_bytes
        return get_config().pool_limit_bytes

    @property
    def bytes_held(self) -> int:
        return self._bytes_held

    def acquire(
        self, shape: tuple[int, ...], dtype: DType, device: Device
    ) -> Optional[Any]:
        """
        Take a recycled buffer of exactly the given shape/dtype/device.

        Returns
        -------
        Optional[Any]
            A writable buffer, or None when no matching buffer is pooled or
            buffer reuse is disabled.
        """
        if not get_config().buffer_reuse:
            return None
        key = self._key(shape, dtype.value, device)
        with self._lock:
            bucket = self._free.get(key)
            if not bucket:
                self.misses += 1
                return None
            buffer = bucket.pop()
            if not bucket:
                del self._free[key]
            self._bytes_held -= int(buffer.nbytes)
            self.hits += 1
        logger.debug("reusing pooled buffer shape=%s dtype=%s on %s", shape, dtype, device)
        return buffer

    def release(self, buffer: Any, device: Device) -> bool:
        """
        Donate a buffer whose last owner is gone.

        Returns
        -------
        bool
            True if the buffer was pooled, False if it was dropped.
        """
        if not get_config().buffer_reuse or not _is_reusable(buffer):
            return False
        nbytes = int(buffer.nbytes)
        key = self._key(buffer.shape, buffer.dtype.name, device)
        with self._lock:
            if self._bytes_held + nbytes > self.limit_bytes:
                return False
            self._free.setdefault(key, []).append(buffer)
            self._bytes_held += nbytes
        return True

    def clear(self) -> None:
        """Drop every pooled buffer."""
        with self._lock:
            self._free.clear()
            self._bytes_held = 0

    def __len__(self) -> int:
        with self._lock:
            return sum(len(b) for b in self._free.values())


_default_pool = BufferPool()


def default_buffer_pool() -> BufferPool:
    """Return the process-wide buffer pool."""
    return _default_pool


@dataclass(eq=False)
class Storage:
    """
    Reference-counted wrapper around one backend buffer.

    Attributes
    ----------
    buffer : Any
        Backend-native array (NumPy or CuPy). Set to None once released.
    device : Device
        Placement of the buffer.
    parent : Optional[Storage]
        Storage this one is a view of, if any.
    owned : bool
        Whether the runtime owns the buffer (only owned roots are donated).
    pool : Optional[BufferPool]
        Pool released buffers are donated to.
    """

    buffer: Any
    device: Device
    parent: Optional["Storage"] = None
    owned: bool = True
    pool: Optional[BufferPool] = field(default_factory=default_buffer_pool)

    _refcnt: int = 1
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def refcount(self) -> int:
        return self._refcnt

    @property
    def released(self) -> bool:
        return self.buffer is None

    def incref(self) -> None:
        """
        Increment the storage reference count.

        Raises
        ------
        RuntimeError
            If the storage has already been released.
        """
        with self._lock:
            if self._refcnt <= 0:
                raise RuntimeError("Cannot reference a released storage.")
            self._refcnt += 1

    def decref(self) -> None:
        """
        Decrement the reference count and release the buffer at zero.

        On release, a view drops its reference on the parent, and an owned
        root donates its buffer to the pool. Calls after the count reached
        zero have no effect.
        """
        with self._lock:
            if self._refcnt <= 0:
                return
            self._refcnt -= 1
            if self._refcnt > 0:
                return
            buffer, self.buffer = self.buffer, None

        if self.parent is not None:
            self.parent.decref()
            return
        if self.owned and self.pool is not None and buffer is not None:
            if self.pool.release(buffer, self.device):
                logger.debug(
                    "donated buffer shape=%s dtype=%s on %s",
                    buffer.shape,
                    buffer.dtype,
                    self.device,
                )

    def view(self, buffer: Any) -> "Storage":
        """
        Create a child storage aliasing this storage's memory.

        Parameters
        ----------
        buffer : Any
            Backend view object sharing memory with `self.buffer`.

        Returns
        -------
        Storage
            Child storage with a reference count of one that keeps `self`
            alive until it is released.
        """
        root = self if self.parent is None else self.parent
        root.incref()
        return Storage(buffer=buffer, device=self.device, parent=root, owned=False)
