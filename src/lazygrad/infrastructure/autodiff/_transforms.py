"""
Differentiation by graph rewriting.

Both transforms are pure: they never touch the forward graph, they only build
new arrays whose primitives are derivative computations. Results are ordinary
pending arrays, so they can be materialized, composed, or differentiated
again (higher-order derivatives).

Reverse mode (`vjp`)
--------------------
Walk the forward graph of the outputs in reverse topological order, keeping
one accumulated cotangent per array. Each primitive's `vjp` rule maps its
output cotangent to per-input cotangents, which are summed into the inputs'
entries. Fan-out is therefore handled by accumulation: an array consumed
twice receives the sum of both contributions.

Only arrays on a path from a requested input to an output are visited.
`stop_gradient` cuts paths.

Forward mode (`jvp`)
--------------------
Walk forward from the inputs, pushing tangents through each primitive's
`jvp` rule. Arrays no input reaches carry no tangent (None) and are skipped.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Sequence, Union
from typing_extensions import ParamSpec
import functools
import logging

from ...domain._errors import DTypeError, DeviceMismatchError, ShapeError
from .. import ops
from ..array._array import Array
from ..array._graph import topological_order
from ..primitives import StopGradient
from ..tree import tree_leaves, tree_map

logger = logging.getLogger(__name__)

ArrayOrSeq = Union[Array, Sequence[Array]]
P = ParamSpec("P")


def _as_list(xs: ArrayOrSeq, what: str) -> list[Array]:
    if isinstance(xs, Array):
        xs = [xs]
    xs = list(xs)
    for x in xs:
        if not isinstance(x, Array):
            raise TypeError(f"{what} must be Arrays, got {type(x).__name__!r}")
    return xs


def _check_like(value: Array, ref: Array, what: str) -> None:
    if value.shape != ref.shape:
        raise ShapeError(f"{what} has shape {value.shape}, expected {ref.shape}")
    if value.dtype != ref.dtype:
        raise DTypeError(f"{what} has dtype {value.dtype}, expected {ref.dtype}")
    if value.device != ref.device:
        raise DeviceMismatchError(str(value.device), str(ref.device))


def _accumulate(table: dict[int, Array], key: Array, value: Array) -> None:
    prev = table.get(key.id)
    table[key.id] = value if prev is None else prev + value


def vjp(
    outputs: ArrayOrSeq,
    inputs: ArrayOrSeq,
    cotangents: Optional[Sequence[Any]] = None,
) -> list[Array]:
    """
    Reverse-mode derivative.

    Parameters
    ----------
    outputs : Array | Sequence[Array]
        Arrays to differentiate.
    inputs : Array | Sequence[Array]
        Arrays to differentiate with respect to. Any array may serve as an
        input, leaf or not.
    cotangents : Optional[Sequence[Array | scalar]]
        Seed per output. Defaults to ones (the gradient of a scalar loss).
        Scalars are broadcast to the output's shape.

    Returns
    -------
    list[Array]
        One cotangent per input, shaped like the input. Inputs no output
        depends on receive zeros.

    Raises
    ------
    ShapeError, DTypeError, DeviceMismatchError
        If a seed does not match its output.
    ValueError
        If the number of seeds differs from the number of outputs.
    """
    outputs = _as_list(outputs, "outputs")
    inputs = _as_list(inputs, "inputs")
    if cotangents is None:
        seeds = [ops.ones_like(o) for o in outputs]
    else:
        if isinstance(cotangents, Array):
            cotangents = [cotangents]
        cotangents = list(cotangents)
        if len(cotangents) != len(outputs):
            raise ValueError(
                f"expected {len(outputs)} cotangent(s), got {len(cotangents)}"
            )
        seeds = []
        for o, c in zip(outputs, cotangents):
            if not isinstance(c, Array):
                c = ops.full_like(o, c)
            _check_like(c, o, "cotangent")
            seeds.append(c)

    order = topological_order(outputs, lambda a: a.primitive is not None)

    input_ids = {x.id for x in inputs}
    on_path: set[int] = set()
    for node in order:
        if node.id in input_ids:
            on_path.add(node.id)
        elif node.primitive is not None and not isinstance(
            node.primitive, StopGradient
        ):
            if any(x.id in on_path for x in node.inputs):
                on_path.add(node.id)
    logger.debug("vjp: %d node(s), %d on a differentiable path", len(order), len(on_path))

    grads: dict[int, Array] = {}
    for o, seed in zip(outputs, seeds):
        if o.id in on_path:
            _accumulate(grads, o, seed)

    for node in reversed(order):
        g = grads.get(node.id)
        if g is None or node.primitive is None:
            continue
        primals = node.inputs
        if not any(x.id in on_path for x in primals):
            continue
        contributions = node.primitive.vjp(g, primals, node)
        if len(contributions) != len(primals):
            raise RuntimeError(
                f"{node.primitive.name} vjp returned {len(contributions)} "
                f"cotangent(s) for {len(primals)} input(s)"
            )
        for x, c in zip(primals, contributions):
            if c is None or x.id not in on_path:
                continue
            if c.shape != x.shape:
                raise ShapeError(
                    f"{node.primitive.name} vjp produced shape {c.shape} "
                    f"for an input of shape {x.shape}"
                )
            _accumulate(grads, x, c)

    result = []
    for x in inputs:
        g = grads.get(x.id)
        result.append(ops.zeros_like(x) if g is None else g)
    return result


def jvp(
    outputs: ArrayOrSeq,
    inputs: ArrayOrSeq,
    tangents: Sequence[Any],
) -> list[Array]:
    """
    Forward-mode derivative.

    Parameters
    ----------
    outputs : Array | Sequence[Array]
        Arrays whose directional derivative is wanted.
    inputs : Array | Sequence[Array]
        Arrays the tangents are attached to.
    tangents : Sequence[Array | scalar]
        One tangent per input, shaped like it.

    Returns
    -------
    list[Array]
        One tangent per output. Outputs that do not depend on any input get
        zeros.
    """
    outputs = _as_list(outputs, "outputs")
    inputs = _as_list(inputs, "inputs")
    if isinstance(tangents, Array):
        tangents = [tangents]
    tangents = list(tangents)
    if len(tangents) != len(inputs):
        raise ValueError(f"expected {len(inputs)} tangent(s), got {len(tangents)}")

    tan: dict[int, Array] = {}
    for x, t in zip(inputs, tangents):
        if not isinstance(t, Array):
            t = ops.full_like(x, t)
        _check_like(t, x, "tangent")
        _accumulate(tan, x, t)

    input_ids = set(tan)
    order = topological_order(
        outputs, lambda a: a.primitive is not None and a.id not in input_ids
    )
    for node in order:
        if node.id in input_ids or node.primitive is None:
            continue
        ts = [tan.get(x.id) for x in node.inputs]
        if all(t is None for t in ts):
            continue
        t = node.primitive.jvp(node.inputs, ts, node)
        if t is not None:
            tan[node.id] = t

    result = []
    for o in outputs:
        t = tan.get(o.id)
        result.append(ops.zeros_like(o) if t is None else t)
    return result


def value_and_grad(
    fun: Callable[P, Array], argnums: Union[int, Sequence[int]] = 0
) -> Callable[P, tuple[Array, Any]]:
    """
    Wrap `fun` to return its value and its gradient.

    Parameters
    ----------
    fun : Callable[..., Array]
        Function of arrays (or trees of arrays) returning one array,
        normally a scalar loss.
    argnums : int | Sequence[int]
        Positional arguments to differentiate with respect to. Each may be a
        tree of arrays; its gradient has the same structure.

    Returns
    -------
    Callable
        ``wrapped(*args, **kwargs) -> (value, grads)``, where `grads` is a
        single gradient tree for an int `argnums` and a tuple otherwise.
    """
    single = isinstance(argnums, int)
    nums = (argnums,) if single else tuple(argnums)

    @functools.wraps(fun)
    def wrapped(*args, **kwargs):
        for i in nums:
            if not -len(args) <= i < len(args):
                raise ValueError(
                    f"argnums={i} is out of range for {len(args)} positional argument(s)"
                )
        value = fun(*args, **kwargs)
        if not isinstance(value, Array):
            raise TypeError(
                f"differentiated function must return an Array, got {type(value).__name__!r}"
            )
        leaves = [tree_leaves(args[i]) for i in nums]
        flat = [leaf for group in leaves for leaf in group]
        grads = iter(vjp([value], _as_list(flat, "differentiated arguments")))
        trees = tuple(tree_map(lambda _: next(grads), args[i]) for i in nums)
        return value, trees[0] if single else trees

    return wrapped


def grad(
    fun: Callable[P, Array], argnums: Union[int, Sequence[int]] = 0
) -> Callable[P, Any]:
    """
    Wrap `fun` to return only its gradient.

    See `value_and_grad` for the meaning of `argnums`.
    """
    vg = value_and_grad(fun, argnums)

    @functools.wraps(fun)
    def wrapped(*args, **kwargs):
        return vg(*args, **kwargs)[1]

    return wrapped


stop_gradient = ops.stop_gradient
