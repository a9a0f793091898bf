"""
Backend kernels and the kernel registry.

Importing this package registers every available backend with
`default_registry`:

- ``numpy`` : vectorized CPU kernels for every primitive kind
- ``blas``  : ``gemm`` for eligible CPU matmuls (higher priority)
- ``cupy``  : GPU kernels, only when CuPy and a GPU are present

Backend modules are imported for their side effects and are not part of the
public API.
"""

from . import _cpu
from . import _blas
from . import _gpu
from ._registry import KernelEntry, KernelRegistry, default_registry

__all__ = [
    KernelEntry.__name__,
    KernelRegistry.__name__,
    "default_registry",
]
