"""Unit tests for intrinsics, camera poses and cameras."""

import unittest

import numpy as np
import numpy.testing as npt
from gtsam import Cal3_S2, Rot3
from gtsam.utils.test_case import GtsamTestCase

from mvtrack.common.camera import Camera, CameraPose, Intrinsics
from mvtrack.common.distortion import DivisionDistortion

INTRINSICS = Intrinsics.from_params(fx=100.0, fy=120.0, u0=320.0, v0=240.0, distort_w=-0.1)


class TestIntrinsics(unittest.TestCase):
    def test_matrix(self) -> None:
        K = np.array([[100.0, 0.0, 320.0], [0.0, 120.0, 240.0], [0.0, 0.0, 1.0]])
        npt.assert_allclose(INTRINSICS.matrix(), K)
        self.assertEqual(INTRINSICS.distort_w, -0.1)

    def test_calibrate_uncalibrate(self) -> None:
        uv = np.array([[420.0, 240.0], [320.0, 0.0], [0.0, 0.0]])
        x = INTRINSICS.calibrate(uv)
        npt.assert_allclose(x, [[1.0, 0.0], [0.0, -2.0], [-3.2, -2.0]])
        npt.assert_allclose(INTRINSICS.uncalibrate(x), uv)

    def test_calibrate_single_point(self) -> None:
        npt.assert_allclose(INTRINSICS.calibrate(np.array([370.0, 300.0])), [0.5, 0.5])

    def test_calibrate_with_skew(self) -> None:
        intrinsics = Intrinsics(Cal3_S2(100.0, 100.0, 5.0, 10.0, 20.0))
        x = np.array([0.3, -0.7])
        npt.assert_allclose(intrinsics.calibrate(intrinsics.uncalibrate(x)), x)

    def test_distort_and_uncalibrate(self) -> None:
        x = np.array([0.5, 0.0])
        expected = INTRINSICS.uncalibrate(DivisionDistortion(-0.1).distort(x))
        npt.assert_allclose(INTRINSICS.distort_and_uncalibrate(x), expected)

    def test_project_and_distort_point_in_front(self) -> None:
        """A homogeneous point with negative depth is dehomogenized, distorted and uncalibrated."""
        x_h = np.array([1.0, -2.0, -4.0])
        npt.assert_allclose(
            INTRINSICS.project_and_distort(x_h), INTRINSICS.distort_and_uncalibrate(np.array([-0.25, 0.5]))
        )

    def test_project_and_distort_point_at_infinity(self) -> None:
        """With zero depth, the point at infinity is approached along -x_h[:2] from the visible side."""
        x_h = np.array([3.0, 4.0, 0.0])
        direction = np.array([-3.0, -4.0])
        expected = INTRINSICS.uncalibrate(INTRINSICS.distortion.distort_at_infinity(direction))
        npt.assert_allclose(INTRINSICS.project_and_distort(x_h), expected)

        # Continuity with points approaching the principal plane from the front.
        almost_at_infinity = np.array([3.0, 4.0, -1e-9])
        npt.assert_allclose(INTRINSICS.project_and_distort(almost_at_infinity), expected, atol=1e-4)

    def test_zero_focal_length_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Intrinsics.from_params(fx=0.0, fy=100.0, u0=0.0, v0=0.0)

    def test_dict_round_trip(self) -> None:
        restored = Intrinsics.from_dict(INTRINSICS.to_dict())
        npt.assert_allclose(restored.matrix(), INTRINSICS.matrix())
        self.assertEqual(restored.distortion, INTRINSICS.distortion)

    def test_default_distortion(self) -> None:
        intrinsics = Intrinsics.from_dict({"fx": 1.0, "fy": 1.0, "u0": 0.0, "v0": 0.0})
        self.assertEqual(intrinsics.distort_w, 0.0)


class TestCameraPose(GtsamTestCase):
    def test_translation(self) -> None:
        cRw = Rot3.RzRyRx(0.1, -0.2, 0.3)
        wC = np.array([1.0, 2.0, 3.0])
        pose = CameraPose(cRw, wC)
        npt.assert_allclose(pose.translation(), -cRw.matrix() @ wC)

        # The camera center maps to the origin of the camera frame.
        npt.assert_allclose(pose.matrix() @ np.append(wC, 1.0), np.zeros(3), atol=1e-12)

    def test_from_matrix(self) -> None:
        cRw = Rot3.RzRyRx(0.4, 0.0, -1.0)
        pose = CameraPose.from_matrix(cRw.matrix().tolist(), [0.0, 0.0, 1.0])
        self.gtsamAssertEquals(pose.cRw, cRw)
        npt.assert_allclose(pose.wC, [0.0, 0.0, 1.0])

    def test_from_matrix_rejects_non_rotation(self) -> None:
        with self.assertRaises(ValueError):
            CameraPose.from_matrix(2 * np.eye(3), [0.0, 0.0, 0.0])
        with self.assertRaises(ValueError):
            CameraPose.from_matrix(np.diag([1.0, 1.0, -1.0]), [0.0, 0.0, 0.0])

    def test_bad_center_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CameraPose(Rot3(), np.zeros(2))

    def test_dict_round_trip(self) -> None:
        pose = CameraPose(Rot3.RzRyRx(0.3, 0.2, 0.1), np.array([-1.0, 0.5, 2.0]))
        restored = CameraPose.from_dict(pose.to_dict())
        self.gtsamAssertEquals(restored.cRw, pose.cRw)
        npt.assert_allclose(restored.wC, pose.wC)


class TestCamera(unittest.TestCase):
    def test_projection_matrix(self) -> None:
        pose = CameraPose(Rot3.RzRyRx(0.0, 0.5, 0.0), np.array([0.0, 1.0, 0.0]))
        camera = Camera(INTRINSICS, pose)
        npt.assert_allclose(camera.projection_matrix(), INTRINSICS.matrix() @ pose.matrix())
        self.assertEqual(camera.projection_matrix().shape, (3, 4))

    def test_projection_matrix_follows_replaced_pose(self) -> None:
        """Replacing the pose gives a new camera whose projection matrix reflects it."""
        camera = Camera(INTRINSICS, CameraPose(Rot3(), np.zeros(3)))
        moved = Camera(camera.intrinsics, CameraPose(Rot3(), np.array([1.0, 0.0, 0.0])))
        npt.assert_allclose(moved.projection_matrix()[:, 3], INTRINSICS.matrix() @ np.array([-1.0, 0.0, 0.0]))
        npt.assert_allclose(camera.projection_matrix()[:, 3], np.zeros(3))


if __name__ == "__main__":
    unittest.main()
