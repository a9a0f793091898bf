"""
Vendor BLAS backend for CPU matrix products.

2-D float32/float64 matmuls on the CPU are routed to the BLAS ``gemm``
routine exposed by `scipy.linalg.blas` (``sgemm`` / ``dgemm``). The kernel
is registered with a higher priority than the NumPy matmul and a predicate,
so everything it does not accept (batched, integer, half precision, empty
operands) falls through to NumPy. Setting `RuntimeConfig.use_blas` to False
disables it at resolution time.

Row-major operands are handed to the column-major routine as their
transposes: ``(A @ B)^T = B^T @ A^T``, and the transpose of a C-contiguous
array is F-contiguous, so no copy is made on the way in or out.
"""

from __future__ import annotations

from typing import Sequence

from scipy.linalg.blas import get_blas_funcs

from ...config import get_config
from ...domain._array import ArraySpec
from ...domain._dtype import DType
from ...domain.device._device import DeviceType
from ._registry import default_registry

BLAS_PRIORITY = 10

_BLAS_DTYPES = (DType.float32, DType.float64)


def blas_eligible(primitive, specs: Sequence[ArraySpec]) -> bool:
    """Return True when a matmul can be served by ``gemm``."""
    if not get_config().use_blas or len(specs) != 2:
        return False
    a, b = specs
    if a.ndim != 2 or b.ndim != 2 or a.dtype not in _BLAS_DTYPES:
        return False
    return all(d > 0 for d in a.shape + b.shape)


def _gemm(primitive, inputs, spec, device, out=None):
    a, b = inputs
    gemm = get_blas_funcs("gemm", (a, b))
    return gemm(1.0, b.T, a.T).T


default_registry.register(
    "matmul",
    DeviceType.CPU,
    _gemm,
    priority=BLAS_PRIORITY,
    predicate=blas_eligible,
    backend="blas",
)
