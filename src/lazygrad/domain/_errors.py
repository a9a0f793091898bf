"""
Graph-construction and execution exceptions for lazygrad.

This module defines the error taxonomy shared by every layer of the runtime.
Errors fall into two groups:

- construction-time errors (`ShapeError`, `DTypeError`, `DeviceMismatchError`)
  raised by primitive shape/type inference as soon as an array is built, so
  they surface next to the offending call;
- materialization-time errors (`UnsupportedOperationError`, `ComputeError`,
  `CyclicGraphError`) raised by the evaluator.

Every error aborts only the enclosing `materialize` / differentiation call.
Arrays that were already materialized outside the failing subgraph remain
valid.
"""

from __future__ import annotations

from typing import Optional


class ShapeError(ValueError):
    """
    Raised when a primitive receives inputs with incompatible shapes.

    Examples include mismatched elementwise operands, incompatible matmul
    inner dimensions, or a reshape that changes the element count.
    """


class DTypeError(TypeError):
    """
    Raised when a primitive receives inputs with incompatible element types.

    The runtime never promotes element types implicitly; casting is an
    explicit `astype` primitive.
    """


class DeviceMismatchError(ValueError):
    """
    Raised when an operation is built from arrays placed on different devices.

    Device transfer is an explicit `to_device` primitive, so operands of any
    other primitive must share a device.
    """

    def __init__(self, device_a: str, device_b: str) -> None:
        """
        Initialize the DeviceMismatchError.

        Parameters
        ----------
        device_a : str
            Device identifier of the first operand.
        device_b : str
            Device identifier of the second operand.
        """
        super().__init__(f"Device mismatch: '{device_a}' vs '{device_b}'.")
        self.device_a = device_a
        self.device_b = device_b


class UnsupportedOperationError(RuntimeError):
    """
    Raised when a primitive has no kernel registered for the requested device.

    This error is raised while planning a materialization, before any kernel
    is enqueued, so no partial storage is left behind. It is recoverable by
    rebuilding the target arrays on a different device.

    Attributes
    ----------
    op : str
        The primitive kind that was attempted (e.g., "add", "matmul").
    device : str
        String representation of the device on which the op was attempted.
    """

    def __init__(self, op: str, device: str) -> None:
        """
        Initialize the UnsupportedOperationError.

        Parameters
        ----------
        op : str
            The primitive kind that is not supported on the given device.
        device : str
            The device identifier (e.g., "gpu:0").
        """
        super().__init__(f"{op} is not implemented for device '{device}'.")
        self.op = op
        self.device = device


class ComputeError(RuntimeError):
    """
    Raised when a backend kernel fails while materializing an array.

    The original backend exception is chained as `__cause__`. There is no
    internal retry; callers may retry the remaining targets or rebuild them
    on another device.

    Attributes
    ----------
    array_id : int
        Identity of the array whose evaluation failed.
    primitive : str
        Kind of the primitive that failed.
    """

    def __init__(self, array_id: int, primitive: str, reason: str = "") -> None:
        message = f"Failed to evaluate array #{array_id} ({primitive})"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.array_id = array_id
        self.primitive = primitive


class CyclicGraphError(RuntimeError):
    """
    Raised when the dependency graph of a set of arrays contains a cycle.

    Arrays cannot be rewired after construction, so this is a defensive check
    performed before topological ordering.

    Attributes
    ----------
    array_id : int
        Identity of an array found on the cycle.
    """

    def __init__(self, array_id: int) -> None:
        super().__init__(f"Array #{array_id} depends on itself.")
        self.array_id = array_id


class TreeStructureError(KeyError):
    """
    Raised when parallel parameter/gradient/state trees do not line up.

    Attributes
    ----------
    path : str
        Dotted path of the offending leaf position.
    """

    def __init__(self, path: str, reason: Optional[str] = None) -> None:
        super().__init__(reason or f"No parameter found for gradient at '{path}'.")
        self.path = path
