from ._tree import (
    StateTree,
    tree_flatten,
    tree_leaves,
    tree_map,
    tree_unflatten,
    tree_update,
)

__all__ = [
    StateTree.__name__,
    "tree_flatten",
    "tree_leaves",
    "tree_map",
    "tree_unflatten",
    "tree_update",
]
