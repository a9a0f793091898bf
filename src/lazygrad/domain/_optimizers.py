"""
Domain-level optimizer contracts for lazygrad.

This module defines the `IOptimizer` protocol, the boundary between the array
runtime and an optimizer library (SGD, Adam, ...).

Notes
-----
- Optimizers never mutate arrays. They receive a gradient tree and a
  parameter tree and return a new parameter tree of the same structure as
  the gradient tree.
- The arithmetic of concrete update rules is outside the runtime; the only
  thing the runtime provides is the structural traversal (`tree_update`).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IOptimizer(Protocol):
    """
    Optimizer interface contract.

    Required members
    ----------------
    - `state` is the per-parameter optimizer state tree.
    - `apply_gradients(gradients, parameters)` returns updated parameters.
    """

    @property
    def state(self) -> Any:
        """
        Return the optimizer state tree.

        Notes
        -----
        The state tree mirrors the parameter tree; entries are created on
        first visit of a parameter position.
        """
        ...

    def apply_gradients(self, gradients: Any, parameters: Any) -> Any:
        """
        Apply one update to `parameters` using `gradients`.

        Parameters
        ----------
        gradients : Any
            Nested mapping/sequence of gradient arrays.
        parameters : Any
            Nested mapping/sequence of parameter arrays; may be a superset of
            the gradient tree.

        Returns
        -------
        Any
            New parameter tree with the structure of `gradients`.
        """
        ...
