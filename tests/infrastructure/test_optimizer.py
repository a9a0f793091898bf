import unittest

import numpy as np

import lazygrad as lg
from lazygrad import IOptimizer, Optimizer, StateTree, TreeStructureError


class _Momentum(Optimizer):
    def __init__(self, learning_rate: float = 0.1, momentum: float = 0.9) -> None:
        super().__init__()
        self.learning_rate = learning_rate
        self.momentum = momentum
        self.initialized = 0

    def init_single(self, parameter, state):
        self.initialized += 1
        state["v"] = lg.zeros_like(parameter)

    def apply_single(self, gradient, parameter, state):
        v = self.momentum * state["v"] + gradient
        state["v"] = v
        return parameter - self.learning_rate * v


class TestOptimizer(unittest.TestCase):
    def test_is_abstract(self) -> None:
        with self.assertRaises(TypeError):
            Optimizer()

    def test_satisfies_protocol(self) -> None:
        self.assertIsInstance(_Momentum(), IOptimizer)

    def test_two_steps(self) -> None:
        opt = _Momentum()
        params = {"w": lg.array([1.0, 2.0]), "b": [lg.array([0.0])]}
        grads = {"w": lg.array([1.0, 1.0]), "b": [lg.array([2.0])]}

        params = opt.apply_gradients(grads, params)
        np.testing.assert_allclose(params["w"].to_numpy(), [0.9, 1.9], rtol=1e-6)
        np.testing.assert_allclose(params["b"][0].to_numpy(), [-0.2], rtol=1e-6)

        params = opt.apply_gradients(grads, params)
        # v = 0.9 * 1 + 1 = 1.9
        np.testing.assert_allclose(params["w"].to_numpy(), [0.71, 1.71], rtol=1e-6)
        self.assertEqual(opt.initialized, 2)
        self.assertIsInstance(opt.state["b"][0], StateTree)

    def test_trains_with_grad(self) -> None:
        target = lg.array([3.0, -1.0])

        def loss(p):
            d = p["x"] - target
            return (d * d).sum()

        opt = _Momentum(learning_rate=0.05, momentum=0.5)
        params = {"x": lg.zeros(2)}
        grad_fn = lg.grad(loss)
        for _ in range(100):
            params = opt.apply_gradients(grad_fn(params), params)
            lg.materialize(lg.tree_leaves(params), retain_graph=False)
        np.testing.assert_allclose(params["x"].to_numpy(), [3.0, -1.0], atol=1e-3)

    def test_missing_parameter(self) -> None:
        with self.assertRaises(TreeStructureError):
            _Momentum().apply_gradients({"w": lg.zeros(1)}, {})

    def test_state_setter_converts_dicts(self) -> None:
        opt = _Momentum()
        opt.state = {"w": {"v": 1}}
        self.assertIsInstance(opt.state, StateTree)
        self.assertIsInstance(opt.state["w"], StateTree)


if __name__ == "__main__":
    unittest.main()
