import unittest

import numpy as np

from tapegrad.domain import (
    Arity,
    DeviceMismatchError,
    Function,
    NotComputedError,
    ShapeMismatchError,
    UnsupportedOperationError,
    UsageError,
)
from tapegrad.infrastructure import (
    AddFn,
    Graph,
    MatMulFn,
    MulFn,
    NumpyStorage,
    TransposeFn,
    ValueCell,
)


def storage(arr) -> NumpyStorage:
    return NumpyStorage.from_numpy(arr, dtype=np.float64)


class _OtherHostStorage(NumpyStorage):
    __slots__ = ()


class _WrongShapeGradFn(Function):
    """Identity whose backward returns a partial of the wrong shape."""

    arity = Arity.UNARY

    @staticmethod
    def forward(ctx, x: ValueCell) -> ValueCell:
        return ValueCell(x.get())

    @staticmethod
    def backward(ctx, grad_out: ValueCell):
        return ValueCell(storage([1.0, 2.0, 3.0])), None


class TestGraphConstruction(unittest.TestCase):

    def test_append_indices_are_sequential(self) -> None:
        g = Graph()
        self.assertEqual(g.size(), 0)
        x = g.create_leaf(storage([1.0]))
        y = g.tensor(storage([2.0]))
        z = x + y
        self.assertEqual((x.index, y.index, z.index), (0, 1, 2))
        self.assertEqual(len(g), 3)

    def test_dependencies_precede_their_users(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0, 2.0]))
        y = g.create_leaf(storage([3.0, 4.0]))
        w = (x + y) * x - y
        self.assertEqual(w.index, g.size() - 1)
        for i in range(g.size()):
            for dep in g.node(i).deps:
                self.assertLess(dep, i)

    def test_leaves_are_tagged_without_operation(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0]))
        node = g.node(x.index)
        self.assertTrue(node.is_leaf)
        self.assertEqual(node.deps, ())
        self.assertIsNone(node.operation)
        self.assertFalse(g.node((x + x).index).is_leaf)

    def test_appending_does_not_evaluate(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0]))
        z = x + x
        self.assertIsNone(g.node(z.index).value)

    def test_create_leaf_rejects_non_storage(self) -> None:
        with self.assertRaises(TypeError):
            Graph().create_leaf(np.array([1.0]))

    def test_mixed_backends_are_rejected(self) -> None:
        g = Graph()
        g.create_leaf(storage([1.0]))
        other = _OtherHostStorage(np.array([2.0]))
        with self.assertRaises(DeviceMismatchError):
            g.create_leaf(other)

    def test_apply_checks_arity(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([[1.0]]))
        with self.assertRaises(UnsupportedOperationError):
            g.apply(AddFn, x)
        with self.assertRaises(UnsupportedOperationError):
            g.apply(TransposeFn, x, x)
        self.assertEqual(g.size(), 1)

    def test_apply_rejects_non_tensor(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0]))
        with self.assertRaises(TypeError):
            g.apply(AddFn, x, storage([1.0]))

    def test_node_index_out_of_range(self) -> None:
        g = Graph()
        g.create_leaf(storage([1.0]))
        with self.assertRaises(IndexError):
            g.node(1)
        with self.assertRaises(IndexError):
            g.forward(5)
        with self.assertRaises(IndexError):
            g.value_of(-1)

    def test_repr_lists_dependencies(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0]))
        y = g.create_leaf(storage([2.0]))
        x + y
        self.assertEqual(repr(g), "Graph([(), (), (0, 1)])")


class TestGraphForward(unittest.TestCase):

    def setUp(self) -> None:
        self.g = Graph()
        self.x = self.g.create_leaf(storage([1.0, 2.0]))
        self.y = self.g.create_leaf(storage([3.0, 4.0]))
        self.z = self.x + self.y
        self.w = self.z * self.x

    def test_forward_to_intermediate_node(self) -> None:
        self.g.forward(self.z.index)
        np.testing.assert_array_equal(self.g.value_of(self.z.index), [4.0, 6.0])
        self.assertIsNone(self.g.node(self.w.index).value)

    def test_read_before_forward(self) -> None:
        with self.assertRaises(NotComputedError) as cm:
            self.g.value_of(self.w.index)
        self.assertIsInstance(cm.exception, UsageError)
        self.assertEqual(cm.exception.index, self.w.index)

    def test_forward_is_idempotent(self) -> None:
        self.g.forward(self.w.index)
        first = self.g.node(self.w.index).value
        self.g.forward(self.w.index)
        self.assertIs(self.g.node(self.w.index).value, first)
        np.testing.assert_array_equal(self.g.value_of(self.w.index), [4.0, 12.0])

    def test_leaf_value_is_available_without_forward(self) -> None:
        np.testing.assert_array_equal(self.g.value_of(self.x.index), [1.0, 2.0])

    def test_failed_forward_commits_no_value(self) -> None:
        g = Graph()
        a = g.create_leaf(storage([[1.0, 2.0]]))
        bad = a @ a
        with self.assertRaises(ShapeMismatchError):
            bad.forward()
        self.assertIsNone(g.node(bad.index).value)
        with self.assertRaises(NotComputedError):
            bad.value()


class TestGraphBackward(unittest.TestCase):

    def setUp(self) -> None:
        self.g = Graph()
        self.x = self.g.create_leaf(storage([1.0, 2.0]))
        self.y = self.g.create_leaf(storage([3.0, 4.0]))
        self.z = self.x * self.y
        self.u = self.y + self.y

    def test_backward_before_forward(self) -> None:
        with self.assertRaises(NotComputedError):
            self.g.backward(self.z.index)

    def test_gradient_read_before_backward(self) -> None:
        self.g.forward(self.z.index)
        with self.assertRaises(NotComputedError):
            self.g.grad_of(self.x.index)

    def test_seed_defaults_to_ones(self) -> None:
        self.g.forward(self.z.index)
        self.g.backward(self.z.index)
        np.testing.assert_array_equal(self.g.grad_of(self.z.index), [1.0, 1.0])
        np.testing.assert_array_equal(self.g.grad_of(self.x.index), [3.0, 4.0])
        np.testing.assert_array_equal(self.g.grad_of(self.y.index), [1.0, 2.0])

    def test_explicit_seed(self) -> None:
        self.g.forward(self.z.index)
        self.g.backward(self.z.index, storage([2.0, -1.0]))
        np.testing.assert_array_equal(self.g.grad_of(self.x.index), [6.0, -4.0])

    def test_seed_shape_mismatch(self) -> None:
        self.g.forward(self.z.index)
        with self.assertRaises(ShapeMismatchError):
            self.g.backward(self.z.index, storage([1.0, 2.0, 3.0]))

    def test_backward_is_idempotent(self) -> None:
        self.g.forward(self.z.index)
        self.g.backward(self.z.index)
        self.g.backward(self.z.index)
        np.testing.assert_array_equal(self.g.grad_of(self.x.index), [3.0, 4.0])

    def test_covered_but_unreached_node_has_zero_gradient(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0, 2.0]))
        unrelated = g.create_leaf(storage([5.0, 5.0]))
        z = x + x
        z.forward()
        z.backward()
        np.testing.assert_array_equal(g.grad_of(unrelated.index), [0.0, 0.0])

    def test_nodes_after_target_are_not_covered(self) -> None:
        self.g.forward(self.u.index)
        self.g.backward(self.z.index)
        with self.assertRaises(NotComputedError):
            self.g.grad_of(self.u.index)

    def test_new_backward_replaces_previous_gradients(self) -> None:
        self.g.forward(self.u.index)
        self.g.backward(self.z.index)
        self.g.backward(self.u.index)
        np.testing.assert_array_equal(self.g.grad_of(self.y.index), [2.0, 2.0])
        np.testing.assert_array_equal(self.g.grad_of(self.x.index), [0.0, 0.0])

    def test_zero_grad(self) -> None:
        self.g.forward(self.z.index)
        self.g.backward(self.z.index)
        self.g.zero_grad()
        with self.assertRaises(NotComputedError):
            self.g.grad_of(self.x.index)

    def test_partials_are_recorded_per_slot(self) -> None:
        self.g.forward(self.z.index)
        self.g.backward(self.z.index)
        grad_x, grad_y = self.g.node(self.z.index).partials
        np.testing.assert_array_equal(grad_x.to_host(), [3.0, 4.0])
        np.testing.assert_array_equal(grad_y.to_host(), [1.0, 2.0])

    def test_accumulation_equals_sum_of_separate_paths(self) -> None:
        a_np = np.array([[1.0, 2.0], [3.0, 4.0]])
        b_np = np.array([[0.5, -1.0], [2.0, 1.5]])

        g = Graph()
        a = g.create_leaf(storage(a_np))
        b = g.create_leaf(storage(b_np))
        total = a @ b + a * b
        total.forward()
        total.backward()

        g1 = Graph()
        a1 = g1.create_leaf(storage(a_np))
        b1 = g1.create_leaf(storage(b_np))
        p1 = a1 @ b1
        p1.forward()
        p1.backward()

        g2 = Graph()
        a2 = g2.create_leaf(storage(a_np))
        b2 = g2.create_leaf(storage(b_np))
        p2 = a2 * b2
        p2.forward()
        p2.backward()

        np.testing.assert_allclose(a.grad(), a1.grad() + a2.grad())
        np.testing.assert_allclose(b.grad(), b1.grad() + b2.grad())

    def test_shared_partial_is_not_mutated_by_accumulation(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0, 1.0]))
        s = x + x
        s.forward()
        s.backward()
        np.testing.assert_array_equal(x.grad(), [2.0, 2.0])
        np.testing.assert_array_equal(s.grad(), [1.0, 1.0])

    def test_failed_backward_leaves_no_gradients(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0, 2.0]))
        bad = g.apply(_WrongShapeGradFn, x)
        out = bad + x
        out.forward()
        with self.assertRaises(ShapeMismatchError):
            out.backward()
        for t in (x, bad, out):
            with self.assertRaises(NotComputedError):
                t.grad()

    def test_failed_backward_discards_previous_gradients(self) -> None:
        g = Graph()
        x = g.create_leaf(storage([1.0, 2.0]))
        good = x * x
        bad = g.apply(_WrongShapeGradFn, x)
        out = bad + good
        out.forward()
        good.backward()
        np.testing.assert_array_equal(x.grad(), [2.0, 4.0])
        with self.assertRaises(ShapeMismatchError):
            out.backward()
        with self.assertRaises(NotComputedError):
            x.grad()
        good.backward()
        np.testing.assert_array_equal(x.grad(), [2.0, 4.0])

    def test_forward_keeps_series_order_in_context(self) -> None:
        g = Graph()
        x = g.create_leaf(storage(np.diag([0.1, 0.2])))
        e = x.expm(series_order=3)
        e.forward()
        ctx = g.node(e.index).operation.ctx
        self.assertEqual(len(ctx.saved_values), 2)
        self.assertEqual(ctx.saved_meta["series_order"], 3)

    def test_matmul_through_graph(self) -> None:
        g = Graph()
        a = g.create_leaf(storage(np.ones((2, 3))))
        b = g.create_leaf(storage(np.ones((3, 4))))
        c = g.apply(MatMulFn, a, b)
        d = g.apply(MulFn, c, c)
        d.forward()
        d.backward()
        self.assertEqual(a.grad().shape, (2, 3))
        self.assertEqual(b.grad().shape, (3, 4))
        np.testing.assert_allclose(c.grad(), 2.0 * c.value())


if __name__ == "__main__":
    unittest.main()
