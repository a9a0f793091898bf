"""
Dependency-graph traversal.

The computation graph is implicit: it is the transitive closure of the
array-to-input edges recorded in `Pending` records. This module turns that
closure into an explicit DAG keyed by array identity and orders it.

Ordering policy
---------------
Kahn's algorithm over a min-heap keyed by array id: whenever several arrays
are ready, the one created first runs first. The order is therefore fully
deterministic for a given graph, which keeps buffer-reuse timing stable
across runs.
"""

from __future__ import annotations

from typing import Callable, Iterable, Sequence
import heapq

from ...domain._errors import CyclicGraphError
from ._array import Array


def collect(
    targets: Iterable[Array], expand: Callable[[Array], bool]
) -> dict[int, Array]:
    """
    Collect every array reachable from `targets`.

    Parameters
    ----------
    targets : Iterable[Array]
        Roots of the traversal.
    expand : Callable[[Array], bool]
        Predicate deciding whether an array's inputs are visited. Arrays
        for which it returns False are still collected, but act as leaves.

    Returns
    -------
    dict[int, Array]
        Reachable arrays keyed by id.

    Raises
    ------
    CyclicGraphError
        If an array transitively depends on itself.
    """
    visiting: set[int] = set()
    done: dict[int, Array] = {}

    for root in targets:
        if root.id in done:
            continue
        stack: list[tuple[Array, bool]] = [(root, False)]
        while stack:
            node, leaving = stack.pop()
            if leaving:
                visiting.discard(node.id)
                done[node.id] = node
                continue
            if node.id in done:
                continue
            if node.id in visiting:
                raise CyclicGraphError(node.id)
            visiting.add(node.id)
            stack.append((node, True))
            if expand(node):
                for x in reversed(node.inputs):
                    if x.id not in done:
                        stack.append((x, False))
    return done


def topological_order(
    targets: Sequence[Array], expand: Callable[[Array], bool]
) -> list[Array]:
    """
    Return the arrays reachable from `targets` in dependency order.

    Inputs always precede their consumers; ties are broken by creation id.

    Parameters
    ----------
    targets : Sequence[Array]
        Roots of the traversal.
    expand : Callable[[Array], bool]
        See `collect`.

    Returns
    -------
    list[Array]
        Every collected array, each exactly once.

    Raises
    ------
    CyclicGraphError
        If the collected subgraph is not acyclic.
    """
    nodes = collect(targets, expand)

    indegree: dict[int, int] = {}
    consumers: dict[int, list[int]] = {}
    for nid, node in nodes.items():
        deps = {x.id for x in node.inputs} if expand(node) else set()
        deps &= nodes.keys()
        indegree[nid] = len(deps)
        for d in deps:
            consumers.setdefault(d, []).append(nid)

    ready = [nid for nid, deg in indegree.items() if deg == 0]
    heapq.heapify(ready)
    order: list[Array] = []
    while ready:
        nid = heapq.heappop(ready)
        order.append(nodes[nid])
        for c in consumers.get(nid, ()):
            indegree[c] -= 1
            if indegree[c] == 0:
                heapq.heappush(ready, c)

    if len(order) != len(nodes):
        stuck = min(nid for nid, deg in indegree.items() if deg > 0)
        raise CyclicGraphError(stuck)
    return order
