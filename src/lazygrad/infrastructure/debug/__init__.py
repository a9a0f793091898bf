from ._printer import format_graph, graph_to_dict, to_dot

__all__ = [
    "format_graph",
    "graph_to_dict",
    "to_dot",
]
