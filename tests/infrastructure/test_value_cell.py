import unittest

import numpy as np

from tapegrad.domain import ShapeMismatchError
from tapegrad.infrastructure import NumpyStorage, ValueCell


def cell(arr) -> ValueCell:
    return ValueCell(NumpyStorage.from_numpy(arr, dtype=np.float64))


class TestValueCell(unittest.TestCase):

    def test_holds_storage(self) -> None:
        s = NumpyStorage.from_numpy([1.0, 2.0])
        c = ValueCell(s)
        self.assertIs(c.get(), s)
        self.assertEqual(c.shape, (2,))
        self.assertTrue(c.device.is_cpu())

    def test_wrapping_a_cell_unwraps_it(self) -> None:
        inner = cell([1.0])
        outer = ValueCell(inner)
        self.assertIs(outer.get(), inner.get())
        self.assertIsNot(outer, inner)

    def test_rejects_non_storage(self) -> None:
        with self.assertRaises(TypeError):
            ValueCell(np.array([1.0]))

    def test_accumulate_is_visible_to_every_holder(self) -> None:
        c = cell([1.0, 2.0])
        alias = c
        c.accumulate_(cell([10.0, 20.0]))
        np.testing.assert_array_equal(alias.to_host(), [11.0, 22.0])

    def test_copy_is_independent_of_accumulation(self) -> None:
        original = cell([1.0, 2.0])
        duplicate = original.copy()
        duplicate.accumulate_(cell([1.0, 1.0]))
        np.testing.assert_array_equal(original.to_host(), [1.0, 2.0])
        np.testing.assert_array_equal(duplicate.to_host(), [2.0, 3.0])

    def test_accumulate_shape_mismatch(self) -> None:
        with self.assertRaises(ShapeMismatchError):
            cell([1.0, 2.0]).accumulate_(cell([1.0, 2.0, 3.0]))


if __name__ == "__main__":
    unittest.main()
