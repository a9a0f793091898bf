"""
Kernel registry for backend dispatch.

Forward evaluation is not a method of a primitive. Instead, each backend
registers kernels per ``(primitive kind, device type)`` pair:

    @default_registry.register("add", DeviceType.CPU)
    def add_cpu(primitive, inputs, spec, device, out=None): ...

Several kernels may serve the same pair. `resolve` picks the entry with the
highest priority whose predicate accepts the concrete operands, which is how
the BLAS matmul takes over eligible CPU matmuls while the NumPy kernel keeps
serving the rest.

Kernel signature
----------------
``kernel(primitive, inputs, spec, device, out=None) -> buffer``

primitive : Primitive
    The operation descriptor (carries parameters such as axes).
inputs : list
    Backend buffers of the materialized inputs, in order.
spec : ArraySpec
    Inferred output description.
device : Device
    Output placement.
out : optional
    A recycled buffer of exactly `spec`'s shape/dtype/device that the kernel
    may write into. Kernels are free to ignore it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, TypeVar
import logging
import threading

from ...domain._array import ArraySpec
from ...domain._errors import UnsupportedOperationError
from ...domain._primitive import Primitive
from ...domain.device._device import Device, DeviceType

logger = logging.getLogger(__name__)

Kernel = Callable[..., Any]
Predicate = Callable[[Primitive, Sequence[ArraySpec]], bool]
K = TypeVar("K", bound=Kernel)


@dataclass(frozen=True)
class KernelEntry:
    """
    One registered kernel.

    Attributes
    ----------
    kernel : Kernel
        Forward implementation.
    priority : int
        Larger wins when several entries accept the same operands.
    predicate : Optional[Predicate]
        Extra eligibility test over ``(primitive, input specs)``.
    backend : str
        Backend label, used in logs and debug output.
    """

    kernel: Kernel
    priority: int = 0
    predicate: Optional[Predicate] = None
    backend: str = ""

    def accepts(self, primitive: Primitive, specs: Sequence[ArraySpec]) -> bool:
        return self.predicate is None or bool(self.predicate(primitive, specs))


class KernelRegistry:
    """Mapping from ``(kind, DeviceType)`` to prioritized kernel entries."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, DeviceType], list[KernelEntry]] = {}
        self._lock = threading.Lock()

    def register(
        self,
        kind: str,
        device_type: DeviceType,
        kernel: Optional[Kernel] = None,
        *,
        priority: int = 0,
        predicate: Optional[Predicate] = None,
        backend: str = "",
    ):
        """
        Register a kernel for a primitive kind on a device type.

        Can be called directly with `kernel` or used as a decorator.

        Parameters
        ----------
        kind : str
            Primitive kind tag (`Primitive.name`).
        device_type : DeviceType
            Device category the kernel runs on.
        kernel : Optional[Kernel]
            Kernel callable. When omitted, a decorator is returned.
        priority : int
            Resolution priority.
        predicate : Optional[Predicate]
            Eligibility test.
        backend : str
            Backend label.

        Returns
        -------
        Kernel | Callable[[Kernel], Kernel]
            The kernel itself, or a registering decorator.
        """

        def decorator(fn: K) -> K:
            entry = KernelEntry(fn, priority, predicate, backend)
            with self._lock:
                bucket = self._entries.setdefault((kind, device_type), [])
                bucket.append(entry)
                bucket.sort(key=lambda e: -e.priority)
            logger.debug(
                "registered %s kernel for %s on %s (priority=%d)",
                backend or "anonymous",
                kind,
                device_type.value,
                priority,
            )
            return fn

        if kernel is not None:
            return decorator(kernel)
        return decorator

    def unregister(self, kind: str, device_type: DeviceType, kernel: Kernel) -> None:
        """Remove a previously registered kernel. Unknown kernels are ignored."""
        with self._lock:
            bucket = self._entries.get((kind, device_type), [])
            bucket[:] = [e for e in bucket if e.kernel is not kernel]
            if not bucket:
                self._entries.pop((kind, device_type), None)

    def resolve(
        self, primitive: Primitive, specs: Sequence[ArraySpec], device: Device
    ) -> KernelEntry:
        """
        Select the kernel for evaluating `primitive` on `device`.

        Raises
        ------
        UnsupportedOperationError
            If no registered kernel accepts the operands.
        """
        with self._lock:
            bucket = list(self._entries.get((primitive.name, device.type), ()))
        for entry in bucket:
            if entry.accepts(primitive, specs):
                return entry
        raise UnsupportedOperationError(primitive.name, str(device))

    def supports(self, kind: str, device_type: DeviceType) -> bool:
        with self._lock:
            return bool(self._entries.get((kind, device_type)))

    def available(self, device_type: DeviceType) -> tuple[str, ...]:
        """Return the sorted kinds that have at least one kernel on `device_type`."""
        with self._lock:
            return tuple(
                sorted(k for (k, dt), v in self._entries.items() if dt is device_type and v)
            )


default_registry = KernelRegistry()
