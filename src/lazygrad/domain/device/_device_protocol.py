"""
Device abstraction contracts for lazygrad.

This module defines a duck-typed `DeviceLike` protocol that represents a
computation device descriptor (CPU or GPU) without coupling to a specific
concrete class implementation.

Relying on structural typing lets the domain contracts (`IArray`,
`Primitive`) talk about placement without importing the concrete `Device`
class or any backend.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class DeviceLike(Protocol):
    """
    Duck-typed device contract.

    Any object that provides these members can be used as a computation device
    descriptor within the framework, regardless of its concrete class identity.
    """

    type: object
    index: Optional[int]

    def is_cpu(self) -> bool: ...
    def is_gpu(self) -> bool: ...
    def __str__(self) -> str: ...
