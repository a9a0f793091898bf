"""
Array-module generic kernels.

NumPy and CuPy expose the same ufunc and array API, so one set of kernels
serves both backends; `register_array_kernels` binds them to an array module
(`xp`) and a device type. Backend-specific concerns (device contexts,
stream synchronization, host/device copies) are layered on by the backend
modules through `wrap`.

Every kernel returns an array of exactly the inferred shape and dtype.
Reductions over all axes return NumPy scalars, so results are passed
through `_as_output` before being handed back.
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Optional

from ...domain.device._device import DeviceType
from ._registry import KernelRegistry

_UFUNCS = {
    "add": "add",
    "subtract": "subtract",
    "multiply": "multiply",
    "divide": "true_divide",
    "maximum": "maximum",
    "power": "power",
    "negative": "negative",
    "exp": "exp",
    "log": "log",
    "sqrt": "sqrt",
    "tanh": "tanh",
    "sin": "sin",
    "cos": "cos",
    "abs": "absolute",
    "floor": "floor",
    "equal": "equal",
    "not_equal": "not_equal",
    "greater": "greater",
    "greater_equal": "greater_equal",
    "less": "less",
    "less_equal": "less_equal",
}


def _as_output(xp, value, spec):
    out = xp.asarray(value, dtype=spec.dtype.numpy)
    if out.shape != spec.shape:
        out = out.reshape(spec.shape)
    return out


def _ufunc(xp, fn_name, primitive, inputs, spec, device, out=None):
    result = getattr(xp, fn_name)(*inputs, out=out)
    return _as_output(xp, result, spec)


def _sigmoid(xp, primitive, inputs, spec, device, out=None):
    (x,) = inputs
    if out is None:
        out = xp.empty(spec.shape, dtype=spec.dtype.numpy)
    xp.negative(x, out=out)
    xp.exp(out, out=out)
    out += 1
    xp.reciprocal(out, out=out)
    return out


def _matmul(xp, primitive, inputs, spec, device, out=None):
    a, b = inputs
    return _as_output(xp, xp.matmul(a, b, out=out), spec)


def _transpose(xp, primitive, inputs, spec, device, out=None):
    return xp.transpose(inputs[0], primitive.axes)


def _reshape(xp, primitive, inputs, spec, device, out=None):
    return xp.reshape(inputs[0], primitive.shape)


def _broadcast_to(xp, primitive, inputs, spec, device, out=None):
    return xp.broadcast_to(inputs[0], primitive.shape)


def _stop_gradient(xp, primitive, inputs, spec, device, out=None):
    return inputs[0]


def _sum(xp, primitive, inputs, spec, device, out=None):
    result = xp.sum(
        inputs[0],
        axis=primitive.axes,
        keepdims=primitive.keepdims,
        dtype=spec.dtype.numpy,
    )
    return _as_output(xp, result, spec)


def _max(xp, primitive, inputs, spec, device, out=None):
    result = xp.max(inputs[0], axis=primitive.axes, keepdims=primitive.keepdims)
    return _as_output(xp, result, spec)


def _astype(xp, primitive, inputs, spec, device, out=None):
    return inputs[0].astype(spec.dtype.numpy, copy=True)


def _where(xp, primitive, inputs, spec, device, out=None):
    cond, x, y = inputs
    return _as_output(xp, xp.where(cond, x, y), spec)


_GENERIC = {
    "sigmoid": _sigmoid,
    "matmul": _matmul,
    "transpose": _transpose,
    "reshape": _reshape,
    "broadcast_to": _broadcast_to,
    "stop_gradient": _stop_gradient,
    "sum": _sum,
    "max": _max,
    "astype": _astype,
    "where": _where,
}


def register_array_kernels(
    registry: KernelRegistry,
    xp: Any,
    device_type: DeviceType,
    backend: str,
    wrap: Optional[Callable[[Callable], Callable]] = None,
) -> None:
    """
    Register every generic kernel for one array module.

    Parameters
    ----------
    registry : KernelRegistry
        Target registry.
    xp : module
        NumPy-compatible array module (`numpy` or `cupy`).
    device_type : DeviceType
        Device category the kernels run on.
    backend : str
        Backend label.
    wrap : Optional[Callable]
        Decorator applied to each bound kernel (device context, sync, ...).
    """
    wrap = wrap or (lambda fn: fn)
    for kind, fn_name in _UFUNCS.items():
        registry.register(
            kind, device_type, wrap(partial(_ufunc, xp, fn_name)), backend=backend
        )
    for kind, fn in _GENERIC.items():
        registry.register(kind, device_type, wrap(partial(fn, xp)), backend=backend)
