"""
Structural utilities for nested parameter / gradient / state trees.

A tree is any nesting of `dict`, `list` and `tuple` containers; every other
object is a leaf. Paths are dotted strings built from mapping keys and
sequence indices (``"layers.0.weight"``).

`tree_update` is the boundary to the optimizer layer: it walks a gradient
tree, finds the matching parameter and optimizer-state entries, and applies
a per-leaf update function.
"""

from __future__ import annotations

from typing import Any, Callable, Hashable, Optional

from ...domain._errors import TreeStructureError

IsLeaf = Optional[Callable[[Any], bool]]


class StateTree(dict):
    """
    Explicit recursive mapping for optimizer state.

    Missing children are never created implicitly by lookups;
    `get_or_insert_default` is the only way a nested entry comes into
    existence, so "absent" and "present but empty" stay distinguishable.
    """

    def get_or_insert_default(self, key: Hashable) -> "StateTree":
        """
        Return the child stored under `key`, creating an empty one if absent.

        Parameters
        ----------
        key : Hashable
            Child key.

        Returns
        -------
        StateTree
            The existing or newly inserted child.
        """
        child = self.get(key)
        if child is None:
            child = StateTree()
            self[key] = child
        return child

    def to_dict(self) -> dict:
        """Return a plain nested `dict` copy."""
        return {
            k: v.to_dict() if isinstance(v, StateTree) else v for k, v in self.items()
        }


def _join(prefix: str, key: Any) -> str:
    return f"{prefix}.{key}" if prefix else str(key)


def _is_container(tree: Any) -> bool:
    return isinstance(tree, (dict, list, tuple))


def tree_map(fn: Callable[..., Any], tree: Any, *rest: Any, is_leaf: IsLeaf = None) -> Any:
    """
    Apply `fn` to every leaf of `tree` and rebuild the structure.

    Parameters
    ----------
    fn : Callable
        Called as ``fn(leaf, *matching_leaves_of_rest)``.
    tree : Any
        Tree whose structure drives the traversal.
    *rest : Any
        Trees with (at least) the structure of `tree`.
    is_leaf : Optional[Callable[[Any], bool]]
        Treat subtrees for which it returns True as leaves.

    Raises
    ------
    TreeStructureError
        If a tree in `rest` lacks a position present in `tree`.
    """
    return _map(fn, tree, rest, is_leaf, "")


def _map(fn, tree, rest, is_leaf, path):
    if (is_leaf is not None and is_leaf(tree)) or not _is_container(tree):
        return fn(tree, *rest)
    if isinstance(tree, dict):
        out = {}
        for k, v in tree.items():
            child = _join(path, k)
            try:
                others = [r[k] for r in rest]
            except (KeyError, TypeError, IndexError):
                raise TreeStructureError(child, f"Tree structures differ at '{child}'.") from None
            out[k] = _map(fn, v, others, is_leaf, child)
        return out
    items = []
    for i, v in enumerate(tree):
        child = _join(path, i)
        try:
            others = [r[i] for r in rest]
        except (KeyError, TypeError, IndexError):
            raise TreeStructureError(child, f"Tree structures differ at '{child}'.") from None
        items.append(_map(fn, v, others, is_leaf, child))
    return type(tree)(items) if isinstance(tree, tuple) else items


def tree_flatten(tree: Any, prefix: str = "", is_leaf: IsLeaf = None) -> list[tuple[str, Any]]:
    """
    Flatten a tree into ``(dotted_path, leaf)`` pairs in traversal order.

    Examples
    --------
    >>> tree_flatten({"a": [1, 2], "b": {"c": 3}})
    [('a.0', 1), ('a.1', 2), ('b.c', 3)]
    """
    if (is_leaf is not None and is_leaf(tree)) or not _is_container(tree):
        return [(prefix, tree)]
    items = tree.items() if isinstance(tree, dict) else enumerate(tree)
    flat = []
    for k, v in items:
        flat.extend(tree_flatten(v, _join(prefix, k), is_leaf))
    return flat


def tree_unflatten(pairs: list[tuple[str, Any]]) -> Any:
    """
    Rebuild a tree from `tree_flatten` output.

    Levels whose keys are all integers become lists; other levels become
    dicts. Tuples are not recovered.
    """
    if len(pairs) == 1 and pairs[0][0] == "":
        return pairs[0][1]
    children: dict[str, list[tuple[str, Any]]] = {}
    for path, value in pairs:
        head, _, tail = path.partition(".")
        children.setdefault(head, []).append((tail, value))
    if children and all(k.isdigit() for k in children):
        return [tree_unflatten(children[k]) for k in sorted(children, key=int)]
    return {k: tree_unflatten(v) for k, v in children.items()}


def tree_leaves(tree: Any, is_leaf: IsLeaf = None) -> list[Any]:
    """Return the leaves of `tree` in traversal order."""
    return [leaf for _, leaf in tree_flatten(tree, is_leaf=is_leaf)]


def _child_state(state: dict, key: Hashable) -> dict:
    if isinstance(state, StateTree):
        return state.get_or_insert_default(key)
    child = state.get(key)
    if child is None:
        child = StateTree()
        state[key] = child
    return child


def tree_update(
    gradients: Any,
    parameters: Any,
    state: dict,
    fn: Callable[[Any, Any, dict], Any],
    *,
    prefix: str = "",
) -> Any:
    """
    Apply a per-leaf update over parallel gradient/parameter/state trees.

    Parameters
    ----------
    gradients : Any
        Gradient tree. Its structure drives the traversal and the result.
        None leaves are skipped (the parameter is returned unchanged).
    parameters : Any
        Parameter tree; may be a superset of `gradients`.
    state : dict
        Optimizer state tree. Missing entries are created empty on first
        visit.
    fn : Callable[[gradient, parameter, state], new_parameter]
        Per-leaf update rule. `state` is that leaf's own state mapping and
        may be mutated in place.
    prefix : str
        Path of `gradients` within the enclosing tree (error messages).

    Returns
    -------
    Any
        New parameters, structured like `gradients`.

    Raises
    ------
    TreeStructureError
        If a gradient position has no matching parameter.
    """
    if isinstance(gradients, dict):
        if not isinstance(parameters, dict):
            raise TreeStructureError(
                prefix, f"Expected a mapping of parameters at '{prefix}'."
            )
        out = {}
        for k, g in gradients.items():
            path = _join(prefix, k)
            if k not in parameters:
                raise TreeStructureError(path)
            out[k] = tree_update(
                g, parameters[k], _child_state(state, k), fn, prefix=path
            )
        return out

    if isinstance(gradients, (list, tuple)):
        if not isinstance(parameters, (list, tuple)):
            raise TreeStructureError(
                prefix, f"Expected a sequence of parameters at '{prefix}'."
            )
        items = []
        for i, g in enumerate(gradients):
            path = _join(prefix, i)
            if i >= len(parameters):
                raise TreeStructureError(path)
            items.append(
                tree_update(g, parameters[i], _child_state(state, i), fn, prefix=path)
            )
        return tuple(items) if isinstance(gradients, tuple) else items

    if gradients is None:
        return parameters
    return fn(gradients, parameters, state)
