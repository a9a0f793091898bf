from ._base import Optimizer

__all__ = [
    Optimizer.__name__,
]
