import unittest

from lazygrad import (
    StateTree,
    TreeStructureError,
    tree_flatten,
    tree_leaves,
    tree_map,
    tree_unflatten,
    tree_update,
)


def _sgd_step(gradient, parameter, state):
    state["steps"] = state.get("steps", 0) + 1
    return parameter - 0.1 * gradient


class TestStateTree(unittest.TestCase):
    def test_get_or_insert_default(self) -> None:
        s = StateTree()
        child = s.get_or_insert_default("layer")
        self.assertIsInstance(child, StateTree)
        self.assertIs(s.get_or_insert_default("layer"), child)
        self.assertIn("layer", s)

    def test_lookup_does_not_create(self) -> None:
        s = StateTree()
        self.assertIsNone(s.get("missing"))
        with self.assertRaises(KeyError):
            s["missing"]
        self.assertEqual(len(s), 0)

    def test_to_dict(self) -> None:
        s = StateTree()
        s.get_or_insert_default("a")["m"] = 1
        plain = s.to_dict()
        self.assertEqual(plain, {"a": {"m": 1}})
        self.assertNotIsInstance(plain["a"], StateTree)


class TestTreeUtilities(unittest.TestCase):
    def setUp(self) -> None:
        self.tree = {"layers": [{"w": 1, "b": 2}, {"w": 3, "b": 4}], "scale": 5}

    def test_flatten_paths(self) -> None:
        self.assertEqual(
            tree_flatten(self.tree),
            [
                ("layers.0.w", 1),
                ("layers.0.b", 2),
                ("layers.1.w", 3),
                ("layers.1.b", 4),
                ("scale", 5),
            ],
        )
        self.assertEqual(tree_flatten(7), [("", 7)])

    def test_unflatten_inverts_flatten(self) -> None:
        self.assertEqual(tree_unflatten(tree_flatten(self.tree)), self.tree)
        self.assertEqual(tree_unflatten([("", 7)]), 7)

    def test_leaves(self) -> None:
        self.assertEqual(tree_leaves(self.tree), [1, 2, 3, 4, 5])
        self.assertEqual(tree_leaves((1, [2, (3,)])), [1, 2, 3])

    def test_map_preserves_structure(self) -> None:
        out = tree_map(lambda x: x * 10, {"a": (1, 2), "b": [3]})
        self.assertEqual(out, {"a": (10, 20), "b": [30]})
        self.assertIsInstance(out["a"], tuple)

    def test_map_over_parallel_trees(self) -> None:
        out = tree_map(lambda x, y: x + y, {"a": [1, 2]}, {"a": [10, 20], "extra": 0})
        self.assertEqual(out, {"a": [11, 22]})

    def test_map_reports_missing_position(self) -> None:
        with self.assertRaises(TreeStructureError) as ctx:
            tree_map(lambda x, y: x + y, {"a": [1, 2]}, {"a": [1]})
        self.assertEqual(ctx.exception.path, "a.1")

    def test_map_is_leaf(self) -> None:
        out = tree_map(len, {"a": [1, 2], "b": [3]}, is_leaf=lambda t: isinstance(t, list))
        self.assertEqual(out, {"a": 2, "b": 1})


class TestTreeUpdate(unittest.TestCase):
    def test_updates_and_creates_state(self) -> None:
        params = {"w": 1.0, "layers": [2.0, 3.0]}
        grads = {"w": 10.0, "layers": [1.0, 0.0]}
        state = StateTree()
        new = tree_update(grads, params, state, _sgd_step)
        self.assertAlmostEqual(new["w"], 0.0)
        self.assertAlmostEqual(new["layers"][0], 1.9)
        self.assertEqual(state["w"]["steps"], 1)
        self.assertEqual(state["layers"][1]["steps"], 1)
        self.assertEqual(params["w"], 1.0)

    def test_none_gradient_is_skipped(self) -> None:
        state = StateTree()
        new = tree_update({"w": None, "b": 1.0}, {"w": 5.0, "b": 0.0}, state, _sgd_step)
        self.assertEqual(new["w"], 5.0)
        self.assertAlmostEqual(new["b"], -0.1)
        self.assertNotIn("steps", state["w"])

    def test_parameters_may_be_a_superset(self) -> None:
        new = tree_update({"a": 1.0}, {"a": 1.0, "frozen": 9.0}, StateTree(), _sgd_step)
        self.assertEqual(set(new), {"a"})

    def test_missing_parameter_raises_with_path(self) -> None:
        with self.assertRaises(TreeStructureError) as ctx:
            tree_update({"layers": [{"w": 1.0}]}, {"layers": [{}]}, StateTree(), _sgd_step)
        self.assertEqual(ctx.exception.path, "layers.0.w")
        with self.assertRaises(TreeStructureError) as ctx:
            tree_update([1.0, 2.0], [1.0], StateTree(), _sgd_step)
        self.assertEqual(ctx.exception.path, "1")

    def test_structure_kind_mismatch(self) -> None:
        with self.assertRaises(TreeStructureError):
            tree_update({"a": 1.0}, [1.0], StateTree(), _sgd_step)

    def test_plain_dict_state_is_accepted(self) -> None:
        state = {}
        tree_update({"a": 1.0}, {"a": 1.0}, state, _sgd_step)
        self.assertIsInstance(state["a"], StateTree)


if __name__ == "__main__":
    unittest.main()
