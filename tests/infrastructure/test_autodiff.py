import unittest
from typing import Callable

import numpy as np

import lazygrad as lg
from lazygrad.domain._errors import ShapeError


def _rand(*shape, seed: int = 0) -> np.ndarray:
    return np.random.default_rng(seed).standard_normal(shape)


def numeric_grad(fn: Callable[[np.ndarray], float], x: np.ndarray, eps: float = 1e-6) -> np.ndarray:
    """Central finite differences of a scalar function of one array."""
    grad = np.zeros_like(x)
    it = np.nditer(x, flags=["multi_index"])
    for _ in it:
        idx = it.multi_index
        orig = x[idx]
        x[idx] = orig + eps
        plus = fn(x)
        x[idx] = orig - eps
        minus = fn(x)
        x[idx] = orig
        grad[idx] = (plus - minus) / (2 * eps)
    return grad


def check_grad(test: unittest.TestCase, build, *arrays: np.ndarray) -> None:
    """Compare `lg.grad` of ``build(*arrays).sum()`` against finite differences."""

    def loss(*xs):
        return build(*xs).sum()

    params = [lg.array(a.copy(), dtype="float64") for a in arrays]
    grads = lg.grad(loss, argnums=tuple(range(len(arrays))))(*params)
    for i, (g, a) in enumerate(zip(grads, arrays)):

        def scalar_fn(x, i=i):
            xs = [lg.array(v, dtype="float64") for v in arrays]
            xs[i] = lg.array(x, dtype="float64")
            return float(loss(*xs).item())

        expected = numeric_grad(scalar_fn, a.copy())
        test.assertEqual(g.shape, a.shape)
        np.testing.assert_allclose(g.to_numpy(), expected, rtol=1e-5, atol=1e-6)


class TestVjpConcrete(unittest.TestCase):
    def test_product_plus_input(self) -> None:
        a = lg.array([[1.0, 2.0], [3.0, 4.0]])
        b = lg.array([[5.0, 6.0], [7.0, 8.0]])
        c = a * b + a
        da, db = lg.vjp(c, [a, b])
        np.testing.assert_array_equal(da.to_numpy(), [[6.0, 7.0], [8.0, 9.0]])
        np.testing.assert_array_equal(db.to_numpy(), [[1.0, 2.0], [3.0, 4.0]])

    def test_fan_out_accumulates(self) -> None:
        x = lg.array([1.0, -2.0, 3.0])
        (g,) = lg.vjp(x + x, [x])
        np.testing.assert_array_equal(g.to_numpy(), [2.0, 2.0, 2.0])

    def test_explicit_cotangent(self) -> None:
        x = lg.array([1.0, 2.0])
        y = x * 3.0
        (g,) = lg.vjp(y, [x], [lg.array([1.0, 10.0])])
        np.testing.assert_array_equal(g.to_numpy(), [3.0, 30.0])
        (g,) = lg.vjp(y, [x], [2.0])
        np.testing.assert_array_equal(g.to_numpy(), [6.0, 6.0])

    def test_cotangent_must_match_output(self) -> None:
        x = lg.array([1.0, 2.0])
        with self.assertRaises(ShapeError):
            lg.vjp(x * 2.0, [x], [lg.array([1.0, 2.0, 3.0])])
        with self.assertRaises(ValueError):
            lg.vjp(x * 2.0, [x], [1.0, 1.0])

    def test_unrelated_input_gets_zeros(self) -> None:
        x = lg.array([1.0, 2.0])
        other = lg.array([[5.0]])
        gx, go = lg.vjp(x * 2.0, [x, other])
        np.testing.assert_array_equal(go.to_numpy(), [[0.0]])
        np.testing.assert_array_equal(gx.to_numpy(), [2.0, 2.0])

    def test_forward_graph_is_untouched(self) -> None:
        a = lg.array([1.0, 2.0])
        c = lg.exp(a) * a
        before = lg.graph_to_dict(c)
        lg.vjp(c, [a])
        self.assertEqual(lg.graph_to_dict(c), before)
        self.assertFalse(c.is_materialized)

    def test_intermediate_input(self) -> None:
        x = lg.array([1.0, 2.0])
        h = x * x
        y = h * 3.0
        (gh,) = lg.vjp(y, [h])
        np.testing.assert_array_equal(gh.to_numpy(), [3.0, 3.0])


class TestVjpFiniteDifferences(unittest.TestCase):
    def test_elementwise_binary(self) -> None:
        a, b = _rand(3, 4, seed=1), _rand(3, 4, seed=2) + 3.0
        check_grad(self, lambda x, y: x + y, a, b)
        check_grad(self, lambda x, y: x - y, a, b)
        check_grad(self, lambda x, y: x * y, a, b)
        check_grad(self, lambda x, y: x / y, a, b)

    def test_elementwise_unary(self) -> None:
        x = _rand(2, 3, seed=3)
        pos = np.abs(x) + 0.5
        check_grad(self, lg.exp, x)
        check_grad(self, lg.tanh, x)
        check_grad(self, lg.sigmoid, x)
        check_grad(self, lg.sin, x)
        check_grad(self, lg.cos, x)
        check_grad(self, lg.log, pos)
        check_grad(self, lg.sqrt, pos)
        check_grad(self, lambda v: v ** 3, x)
        check_grad(self, lambda v: -v, x)

    def test_matmul(self) -> None:
        check_grad(self, lambda a, b: a @ b, _rand(3, 4, seed=4), _rand(4, 2, seed=5))
        check_grad(
            self, lambda a, b: lg.tanh(a @ b), _rand(2, 3, 4, seed=6), _rand(2, 4, 2, seed=7)
        )

    def test_broadcasting(self) -> None:
        check_grad(self, lambda x, y: x * y, _rand(3, 4, seed=8), _rand(1, 4, seed=9))
        check_grad(self, lambda x, y: x + y, _rand(2, 3, 4, seed=10), _rand(4, seed=11))

    def test_shape_ops_and_reductions(self) -> None:
        x = _rand(2, 3, seed=12)
        w = _rand(3, 2, seed=13)
        check_grad(self, lambda v: v.T * lg.array(w, dtype="float64"), x)
        check_grad(self, lambda v: v.reshape(3, 2) * lg.array(w, dtype="float64"), x)
        check_grad(self, lambda v: v.sum(axis=0) ** 2, x)
        check_grad(self, lambda v: v.mean(axis=1, keepdims=True) * v, x)
        check_grad(self, lambda v: v.max(axis=1) ** 2, x)

    def test_power_with_zero_base(self) -> None:
        a = lg.array([0.0, 2.0], dtype="float64")
        b = lg.array([1.5, 2.0], dtype="float64")
        da, db = lg.vjp(a ** b, [a, b])
        db_np = db.to_numpy()
        self.assertFalse(np.isnan(db_np).any())
        np.testing.assert_allclose(db_np, [0.0, 4.0 * np.log(2.0)])
        np.testing.assert_allclose(da.to_numpy(), [0.0, 4.0])
        (tb,) = lg.jvp(a ** b, [b], [1.0])
        np.testing.assert_allclose(tb.to_numpy(), [0.0, 4.0 * np.log(2.0)])

    def test_maximum_and_where(self) -> None:
        a, b = _rand(4, seed=14), _rand(4, seed=15)
        check_grad(self, lg.maximum, a, b)
        check_grad(self, lambda v: lg.where(v > 0, v * v, v * 0.5), a)

    def test_mlp_loss(self) -> None:
        x_np = _rand(5, 3, seed=16)
        t_np = _rand(5, 2, seed=17)

        def build(w1, w2):
            x = lg.array(x_np, dtype="float64")
            t = lg.array(t_np, dtype="float64")
            h = lg.tanh(x @ w1)
            err = h @ w2 - t
            return (err * err).mean()

        check_grad(self, build, _rand(3, 4, seed=18), _rand(4, 2, seed=19))


class TestSpecialRules(unittest.TestCase):
    def test_max_ties_share_gradient(self) -> None:
        x = lg.array([1.0, 3.0, 3.0, 2.0])
        (g,) = lg.vjp(x.max(), [x])
        np.testing.assert_allclose(g.to_numpy(), [0.0, 0.5, 0.5, 0.0])

    def test_stop_gradient_cuts_path(self) -> None:
        x = lg.array([1.0, 2.0, 3.0])
        y = lg.stop_gradient(x) * x
        (g,) = lg.vjp(y, [x])
        np.testing.assert_array_equal(g.to_numpy(), [1.0, 2.0, 3.0])
        (g,) = lg.vjp(lg.stop_gradient(x * x), [x])
        np.testing.assert_array_equal(g.to_numpy(), [0.0, 0.0, 0.0])

    def test_comparison_has_zero_gradient(self) -> None:
        x = lg.array([1.0, 2.0])
        (g,) = lg.vjp(lg.astype(x > 1.5, "float32") * x, [x])
        np.testing.assert_array_equal(g.to_numpy(), [0.0, 1.0])

    def test_astype_to_integer_blocks_gradient(self) -> None:
        x = lg.array([1.5, 2.5])
        y = lg.astype(lg.astype(x, "int32"), "float32")
        (g,) = lg.vjp(y, [x])
        np.testing.assert_array_equal(g.to_numpy(), [0.0, 0.0])


class TestJvp(unittest.TestCase):
    def test_directional_derivative(self) -> None:
        x_np = np.array([0.1, 0.7, -1.3])
        x = lg.array(x_np, dtype="float64")
        y = lg.sin(x) * x
        (t,) = lg.jvp(y, [x], [lg.ones_like(x)])
        np.testing.assert_allclose(t.to_numpy(), np.cos(x_np) * x_np + np.sin(x_np))

    def test_matches_vjp_on_linear_map(self) -> None:
        w_np = _rand(3, 3, seed=20)
        v_np = _rand(3, 1, seed=21)
        x = lg.array(_rand(3, 1, seed=22), dtype="float64")
        y = lg.array(w_np, dtype="float64") @ x
        (t,) = lg.jvp(y, [x], [lg.array(v_np, dtype="float64")])
        np.testing.assert_allclose(t.to_numpy(), w_np @ v_np, rtol=1e-10)

    def test_scalar_tangent_and_unreached_output(self) -> None:
        x = lg.array([1.0, 2.0])
        z = lg.array([4.0])
        ty, tz = lg.jvp([x * 3.0, z + 1.0], [x], [1.0])
        np.testing.assert_array_equal(ty.to_numpy(), [3.0, 3.0])
        np.testing.assert_array_equal(tz.to_numpy(), [0.0])

    def test_tangent_count_must_match(self) -> None:
        x = lg.array([1.0])
        with self.assertRaises(ValueError):
            lg.jvp(x * 2.0, [x], [])


class TestGradTransforms(unittest.TestCase):
    def test_higher_order(self) -> None:
        x_np = np.array([0.5, -1.0, 2.0])
        x = lg.array(x_np, dtype="float64")
        cube = lambda v: (v * v * v).sum()
        g = lg.grad(cube)
        gg = lg.grad(lambda v: g(v).sum())
        np.testing.assert_allclose(g(x).to_numpy(), 3 * x_np ** 2)
        np.testing.assert_allclose(gg(x).to_numpy(), 6 * x_np)

    def test_value_and_grad_over_tree(self) -> None:
        params = {
            "w": lg.array([[1.0, 2.0], [3.0, 4.0]]),
            "layers": [lg.array([0.5, -0.5])],
        }
        x = lg.array([[1.0, 1.0]])

        def loss(p, inputs):
            return ((inputs @ p["w"]) * p["layers"][0]).sum()

        value, grads = lg.value_and_grad(loss)(params, x)
        self.assertAlmostEqual(value.item(), 4.0 * 0.5 + 6.0 * -0.5)
        self.assertEqual(set(grads), {"w", "layers"})
        self.assertIsInstance(grads["layers"], list)
        np.testing.assert_array_equal(grads["layers"][0].to_numpy(), [4.0, 6.0])
        np.testing.assert_array_equal(grads["w"].to_numpy(), [[0.5, -0.5], [0.5, -0.5]])

    def test_grad_multiple_argnums(self) -> None:
        f = lambda a, b: (a * b).sum()
        ga, gb = lg.grad(f, argnums=(0, 1))(lg.array([2.0]), lg.array([5.0]))
        self.assertEqual(ga.item(), 5.0)
        self.assertEqual(gb.item(), 2.0)

    def test_grad_validates(self) -> None:
        with self.assertRaises(TypeError):
            lg.grad(lambda a: 1.0)(lg.array([1.0]))
        with self.assertRaises(ValueError):
            lg.grad(lambda a: a.sum(), argnums=3)(lg.array([1.0]))


if __name__ == "__main__":
    unittest.main()
