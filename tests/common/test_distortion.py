"""Unit tests for the division distortion model."""

import unittest

import numpy as np
import numpy.testing as npt

import mvtrack.common.distortion as distortion
from mvtrack.common.distortion import DivisionDistortion

DISTORTION_PARAMS = [0.0, -0.05, -0.3, -2.0]


def sample_points_in_domain(model: DivisionDistortion, num_points: int = 200) -> np.ndarray:
    """Samples distorted points strictly inside the invertible domain (or the unit square when w == 0)."""
    rng = np.random.default_rng(0)
    max_radius = min(model.max_distorted_radius(), 2.0)
    radii = 0.95 * max_radius * np.sqrt(rng.uniform(size=num_points))
    angles = rng.uniform(0, 2 * np.pi, size=num_points)
    return np.stack([radii * np.cos(angles), radii * np.sin(angles)], axis=1)


class TestDivisionDistortion(unittest.TestCase):
    def test_round_trip(self) -> None:
        """Ensure distort(undistort(p)) recovers p for every point in the undistortable domain."""
        for w in DISTORTION_PARAMS:
            model = DivisionDistortion(w)
            x_d = sample_points_in_domain(model)
            self.assertTrue(np.all(model.is_undistortable(x_d)))
            npt.assert_allclose(model.distort(model.undistort(x_d)), x_d, atol=1e-9)

    def test_zero_distortion_is_identity(self) -> None:
        model = DivisionDistortion(0.0)
        x = np.array([[3.0, -4.0], [0.0, 0.0], [1e6, 2e6]])
        npt.assert_allclose(model.distort(x), x)
        npt.assert_allclose(model.undistort(x), x)
        self.assertEqual(model.max_distorted_radius(), np.inf)

    def test_undistort_single_point(self) -> None:
        model = DivisionDistortion(-0.1)
        npt.assert_allclose(model.undistort(np.array([1.0, 0.0])), [1.0 / 0.9, 0.0])

    def test_is_undistortable_boundary(self) -> None:
        """Points on or beyond the radius 1 / sqrt(-w) cannot be inverted."""
        model = DivisionDistortion(-0.25)
        x_d = np.array([[1.9, 0.0], [0.0, 2.0], [2.5, 0.0], [-1.0, 1.0]])
        npt.assert_array_equal(model.is_undistortable(x_d), [True, False, False, True])
        self.assertFalse(model.is_undistortable(np.array([0.0, 2.0])))

    def test_undistort_outside_domain_raises(self) -> None:
        model = DivisionDistortion(-0.25)
        with self.assertRaises(ValueError):
            model.undistort(np.array([[0.5, 0.0], [3.0, 0.0]]))

    def test_positive_parameter_rejected(self) -> None:
        with self.assertRaises(ValueError):
            DivisionDistortion(0.1)
        with self.assertRaises(ValueError):
            DivisionDistortion(np.nan)

    def test_distort_at_infinity(self) -> None:
        """Directions land on the circle of radius 1 / sqrt(-w), in the direction they point."""
        model = DivisionDistortion(-0.25)
        x = model.distort_at_infinity(np.array([3.0, 4.0]))
        npt.assert_allclose(x, [1.2, 1.6])
        npt.assert_allclose(np.linalg.norm(x), model.max_distorted_radius())

    def test_distort_at_infinity_is_limit_of_distort(self) -> None:
        model = DivisionDistortion(-0.1)
        direction = np.array([-1.0, 2.0])
        far_point = direction * 1e9
        npt.assert_allclose(model.distort(far_point), model.distort_at_infinity(direction), atol=1e-6)

    def test_distort_at_infinity_without_distortion_raises(self) -> None:
        with self.assertRaises(ValueError):
            DivisionDistortion(0.0).distort_at_infinity(np.array([1.0, 0.0]))

    def test_distort_at_infinity_zero_direction_raises(self) -> None:
        with self.assertRaises(ValueError):
            DivisionDistortion(-0.1).distort_at_infinity(np.zeros(2))

    def test_distorted_points_are_undistortable(self) -> None:
        """Every finite point distorts to the interior of the domain."""
        model = DivisionDistortion(-0.3)
        x_u = np.array([[0.0, 0.0], [10.0, -3.0], [1e4, 1e4]])
        self.assertTrue(np.all(model.is_undistortable(model.distort(x_u))))

    def test_module_level_functions(self) -> None:
        x = np.array([0.3, -0.2])
        w = -0.2
        npt.assert_allclose(distortion.distort(distortion.undistort(x, w), w), x)
        self.assertTrue(distortion.is_undistortable(x, w))
        npt.assert_allclose(
            distortion.distort_at_infinity(x, w), DivisionDistortion(w).distort_at_infinity(x)
        )

    def test_invalid_shape_raises(self) -> None:
        with self.assertRaises(TypeError):
            DivisionDistortion(-0.1).distort(np.zeros(3))


if __name__ == "__main__":
    unittest.main()
