"""Unit tests for loading the calibration of named views."""

import tempfile
import unittest
from pathlib import Path

import numpy as np
import numpy.testing as npt
from gtsam import Rot3

import mvtrack.utils.io as io_utils
from mvtrack.loader.view_loader import ViewLoader, ViewLoadError

INTRINSICS = {"fx": 100.0, "fy": 110.0, "skew": 0.0, "u0": 50.0, "v0": 40.0, "distort_w": -0.1}


class TestViewLoader(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tempdir.name)
        (self.root / "views.txt").write_text("left\nright\n")
        for name, center in [("left", [0.0, 0.0, 0.0]), ("right", [1.0, 0.0, 0.5])]:
            io_utils.save_json_file(self.root / "intrinsics" / f"{name}.json", INTRINSICS)
            extrinsics = {"rotation": Rot3.RzRyRx(0.0, 0.1, 0.0).matrix().tolist(), "center": center}
            io_utils.save_json_file(self.root / "extrinsics" / f"{name}.json", extrinsics)
        self.loader = self._make_loader()

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _make_loader(self) -> ViewLoader:
        return ViewLoader(
            self.root / "views.txt",
            str(self.root / "intrinsics" / "%s.json"),
            str(self.root / "extrinsics" / "%s.json"),
        )

    def test_view_names(self) -> None:
        self.assertEqual(len(self.loader), 2)
        self.assertEqual(self.loader.view_names(), ["left", "right"])

    def test_get_camera(self) -> None:
        camera = self.loader.get_camera(1)
        npt.assert_allclose(camera.intrinsics.matrix(), [[100.0, 0.0, 50.0], [0.0, 110.0, 40.0], [0.0, 0.0, 1.0]])
        self.assertEqual(camera.intrinsics.distort_w, -0.1)
        npt.assert_allclose(camera.pose.wC, [1.0, 0.0, 0.5])
        npt.assert_allclose(camera.pose.rotation_matrix(), Rot3.RzRyRx(0.0, 0.1, 0.0).matrix(), atol=1e-12)

    def test_get_reference_and_other_cameras(self) -> None:
        reference, other_indices, others = self.loader.get_reference_and_other_cameras(1)
        npt.assert_allclose(reference.pose.wC, [1.0, 0.0, 0.5])
        self.assertEqual(other_indices, [0])
        self.assertEqual(len(others), 1)
        npt.assert_allclose(others[0].pose.wC, np.zeros(3))

    def test_index_out_of_range(self) -> None:
        with self.assertRaises(ValueError):
            self.loader.get_camera(2)
        with self.assertRaises(ValueError):
            self.loader.get_reference_and_other_cameras(-1)

    def test_missing_views_file(self) -> None:
        with self.assertRaises(ViewLoadError):
            ViewLoader(self.root / "missing.txt", "%s", "%s")

    def test_missing_calibration_file(self) -> None:
        (self.root / "intrinsics" / "right.json").unlink()
        with self.assertRaises(ViewLoadError):
            self.loader.get_intrinsics(1)
        # The other view still loads.
        self.loader.get_intrinsics(0)

    def test_malformed_json(self) -> None:
        (self.root / "extrinsics" / "left.json").write_text("{not json")
        with self.assertRaises(ViewLoadError):
            self.loader.get_pose(0)

    def test_invalid_rotation(self) -> None:
        io_utils.save_json_file(
            self.root / "extrinsics" / "left.json", {"rotation": np.eye(3).tolist()[:2], "center": [0, 0, 0]}
        )
        with self.assertRaises(ViewLoadError):
            self.loader.get_pose(0)

        io_utils.save_json_file(
            self.root / "extrinsics" / "left.json", {"rotation": (2 * np.eye(3)).tolist(), "center": [0, 0, 0]}
        )
        with self.assertRaises(ViewLoadError):
            self.loader.get_pose(0)

    def test_missing_intrinsics_key(self) -> None:
        io_utils.save_json_file(self.root / "intrinsics" / "left.json", {"fx": 1.0})
        with self.assertRaises(ViewLoadError):
            self.loader.get_intrinsics(0)


if __name__ == "__main__":
    unittest.main()
