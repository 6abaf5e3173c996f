import importlib.util
import unittest

import numpy as np

from tapegrad.domain import DeviceNotSupportedError
from tapegrad.domain.device import Device
from tapegrad.infrastructure import CupyStorage, Graph, NumpyStorage, cuda_available


class TestCupyMissing(unittest.TestCase):

    def setUp(self) -> None:
        if importlib.util.find_spec("cupy") is not None:
            self.skipTest("CuPy is installed")

    def test_cuda_not_available(self) -> None:
        self.assertFalse(cuda_available())

    def test_from_numpy_raises(self) -> None:
        with self.assertRaises(DeviceNotSupportedError):
            CupyStorage.from_numpy([1.0, 2.0])


class TestCupyStorage(unittest.TestCase):

    def setUp(self) -> None:
        if not cuda_available():
            self.skipTest("CUDA is not available")

    def test_round_trip(self) -> None:
        s = CupyStorage.from_numpy([[1.0, 2.0], [3.0, 4.0]], dtype=np.float64)
        self.assertEqual(s.device, Device("cuda:0"))
        self.assertEqual(s.shape, (2, 2))
        np.testing.assert_array_equal(s.to_host(), [[1.0, 2.0], [3.0, 4.0]])

    def test_rejects_cpu_device(self) -> None:
        with self.assertRaises(ValueError):
            CupyStorage.from_numpy([1.0], device=Device("cpu"))

    def test_matches_numpy_backend(self) -> None:
        rng = np.random.default_rng(3)
        a_np = rng.standard_normal((3, 3))
        b_np = rng.standard_normal((3, 3))

        results = []
        for make in (
            lambda arr: NumpyStorage.from_numpy(arr, dtype=np.float64),
            lambda arr: CupyStorage.from_numpy(arr, dtype=np.float64),
        ):
            g = Graph()
            a = g.create_leaf(make(a_np))
            b = g.create_leaf(make(b_np))
            z = (a @ b) * a - b
            z.forward()
            z.backward()
            results.append((z.value(), a.grad(), b.grad()))

        for host, device in zip(results[0], results[1]):
            np.testing.assert_allclose(device, host, rtol=1e-10)


if __name__ == "__main__":
    unittest.main()
