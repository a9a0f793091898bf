"""
lazygrad: a lazy array runtime with graph-rewriting automatic differentiation.

Arrays are nodes of a deferred computation graph. Building an array only
records shape, element type, placement and dependency edges; values are
computed when they are demanded (`materialize`, `Array.eval`,
`Array.to_numpy`), by kernels dispatched to NumPy, BLAS or CuPy backends on
per-device streams. Derivatives (`vjp`, `jvp`, `grad`) are new graph nodes
built from per-primitive rules.

Examples
--------
>>> import lazygrad as lg
>>> a = lg.array([[1.0, 2.0], [3.0, 4.0]])
>>> b = lg.array([[5.0, 6.0], [7.0, 8.0]])
>>> c = a * b + a
>>> lg.materialize([c])
>>> da, db = lg.vjp(c, [a, b])
"""

import logging

from .config import RuntimeConfig, get_config, set_config
from .domain import (
    ArraySpec,
    ComputeError,
    CyclicGraphError,
    DType,
    DTypeError,
    Device,
    DeviceInfo,
    DeviceMismatchError,
    DeviceType,
    IArray,
    IOptimizer,
    Primitive,
    ShapeError,
    TreeStructureError,
    UnsupportedOperationError,
)
from .infrastructure.array import Array, arange, array, full, ones, zeros
from .infrastructure.ops import (
    abs,
    add,
    astype,
    broadcast_to,
    cos,
    divide,
    equal,
    exp,
    floor,
    full_like,
    greater,
    greater_equal,
    less,
    less_equal,
    log,
    matmul,
    max,
    maximum,
    mean,
    multiply,
    negative,
    not_equal,
    ones_like,
    power,
    reshape,
    sigmoid,
    sin,
    sqrt,
    stop_gradient,
    subtract,
    sum,
    tanh,
    to_device,
    transpose,
    where,
    zeros_like,
)
from .infrastructure.scheduler import (
    Evaluator,
    Event,
    Stream,
    default_evaluator,
    default_stream,
    materialize,
    materialize_async,
    new_stream,
    stream_scope,
    synchronize,
    wait,
)
from .infrastructure.autodiff import grad, jvp, value_and_grad, vjp
from .infrastructure.tree import (
    StateTree,
    tree_flatten,
    tree_leaves,
    tree_map,
    tree_unflatten,
    tree_update,
)
from .infrastructure.optimizers import Optimizer
from .infrastructure.debug import format_graph, graph_to_dict, to_dot
from .infrastructure.devices import (
    available_devices,
    default_device,
    set_default_device,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

float32 = DType.float32
float64 = DType.float64
float16 = DType.float16
int32 = DType.int32
int64 = DType.int64
bool_ = DType.bool_

__version__ = "0.1.0"
