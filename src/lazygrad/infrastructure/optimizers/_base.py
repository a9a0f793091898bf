"""
Optimizer base class over parameter trees.

`Optimizer` implements the `IOptimizer` contract on top of `tree_update`:
it owns a `StateTree`, walks the gradient tree in parallel with the
parameter and state trees, and delegates the arithmetic of each leaf to
`apply_single`. Subclasses supply the update rule (SGD, Adam, ...); this
module provides none.

Design notes
------------
- Parameters are never mutated. `apply_gradients` returns a new parameter
  tree with the structure of the gradient tree.
- Per-parameter state lives at the parameter's path in `state` and is
  created empty on first visit; `init_single` fills it before the first
  `apply_single` call for that parameter.
- Gradient leaves that are None are skipped, so frozen parameters can be
  expressed by omitting or nulling their gradients.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ...domain._optimizers import IOptimizer
from ..tree._tree import StateTree, tree_update


class Optimizer(IOptimizer, ABC):
    """
    Abstract tree-based optimizer.

    Subclasses implement `apply_single` and optionally `init_single`.
    """

    def __init__(self) -> None:
        self._state = StateTree()

    @property
    def state(self) -> StateTree:
        return self._state

    @state.setter
    def state(self, state: dict) -> None:
        self._state = state if isinstance(state, StateTree) else _to_state(state)

    def init_single(self, parameter: Any, state: StateTree) -> None:
        """
        Initialize the empty state of one parameter.

        Called once per parameter position, right before its first update.
        The default does nothing.
        """

    @abstractmethod
    def apply_single(self, gradient: Any, parameter: Any, state: StateTree) -> Any:
        """
        Compute the updated value of one parameter.

        Parameters
        ----------
        gradient : Array
            Gradient of the loss with respect to `parameter`.
        parameter : Array
            Current parameter value.
        state : StateTree
            This parameter's optimizer state; may be mutated in place.

        Returns
        -------
        Array
            The new parameter value.
        """
        ...

    def _update(self, gradient: Any, parameter: Any, state: StateTree) -> Any:
        if not state:
            self.init_single(parameter, state)
        return self.apply_single(gradient, parameter, state)

    def apply_gradients(self, gradients: Any, parameters: Any) -> Any:
        """
        Apply one update step.

        Raises
        ------
        TreeStructureError
            If a gradient has no matching parameter.
        """
        return tree_update(gradients, parameters, self._state, self._update)


def _to_state(tree: dict) -> StateTree:
    return StateTree(
        {k: _to_state(v) if isinstance(v, dict) else v for k, v in tree.items()}
    )
