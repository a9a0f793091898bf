"""
Pending-graph introspection.

Three views of the graph behind a set of target arrays:

- `graph_to_dict`: a JSON-friendly description, nodes sorted by id;
- `format_graph`: a human-readable dump;
- `to_dot`: Graphviz DOT text.

The formats are for diagnostics only and carry no compatibility guarantee.
Nothing here materializes or otherwise changes an array.
"""

from __future__ import annotations

from typing import Any, Iterable, Union

from ..array._array import Array
from ..array._graph import collect

Targets = Union[Array, Iterable[Array]]


def _nodes(targets: Targets) -> list[Array]:
    if isinstance(targets, Array):
        targets = [targets]
    found = collect(list(targets), lambda a: a.primitive is not None)
    return [found[k] for k in sorted(found)]


def _fmt_params(params: dict[str, Any]) -> str:
    if not params:
        return ""
    items = []
    for k, v in params.items():
        items.append(f"{k}={v:.6g}" if isinstance(v, float) else f"{k}={v}")
    return "  {" + ", ".join(items) + "}"


def graph_to_dict(targets: Targets) -> dict[str, Any]:
    """
    Describe the graph reachable from `targets`.

    Returns
    -------
    dict
        ``{"targets": [ids], "nodes": [...]}`` where each node has ``id``,
        ``kind`` ("leaf" for leaves), ``params``, ``shape``, ``dtype``,
        ``device``, ``inputs`` (ids) and ``materialized``.
    """
    if isinstance(targets, Array):
        targets = [targets]
    targets = list(targets)
    nodes = []
    for a in _nodes(targets):
        prim = a.primitive
        nodes.append(
            {
                "id": a.id,
                "kind": "leaf" if prim is None else prim.name,
                "params": {} if prim is None else dict(prim.params()),
                "shape": list(a.shape),
                "dtype": str(a.dtype),
                "device": str(a.device),
                "inputs": [x.id for x in a.inputs],
                "materialized": a.is_materialized,
            }
        )
    return {"targets": [t.id for t in targets], "nodes": nodes}


def format_graph(targets: Targets) -> str:
    """Render the graph reachable from `targets` as text, one node per line."""
    graph = graph_to_dict(targets)
    lines = [f"=== graph: {len(graph['nodes'])} node(s) ==="]
    for n in graph["nodes"]:
        ins = ", ".join(f"#{i}" for i in n["inputs"])
        state = "*" if n["materialized"] else " "
        lines.append(
            f" {state}#{n['id']:<4d} {n['kind']:<14s} ({ins}) "
            f"shape={tuple(n['shape'])} dtype={n['dtype']} device={n['device']}"
            f"{_fmt_params(n['params'])}"
        )
    lines.append("targets: " + ", ".join(f"#{t}" for t in graph["targets"]))
    return "\n".join(lines)


def to_dot(targets: Targets, name: str = "lazygrad") -> str:
    """Render the graph reachable from `targets` as Graphviz DOT text."""
    graph = graph_to_dict(targets)
    target_ids = set(graph["targets"])
    lines = [f"digraph {name} {{", "  rankdir=LR;"]
    for n in graph["nodes"]:
        label = f"#{n['id']} {n['kind']}\\n{tuple(n['shape'])} {n['dtype']}"
        attrs = [f'label="{label}"', "shape=box" if n["kind"] == "leaf" else "shape=ellipse"]
        if n["materialized"]:
            attrs.append("style=filled")
        if n["id"] in target_ids:
            attrs.append("peripheries=2")
        lines.append(f"  n{n['id']} [{', '.join(attrs)}];")
    for n in graph["nodes"]:
        for i in n["inputs"]:
            lines.append(f"  n{i} -> n{n['id']};")
    lines.append("}")
    return "\n".join(lines)
