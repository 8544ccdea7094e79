"""Loader for the calibration of a set of named views.

The view names are read from a text file, one per line. Each view's intrinsics and extrinsics are JSON files whose
paths are printf-style formats of the view name, e.g. `intrinsics/%s.json`:

    intrinsics: {"fx": ..., "fy": ..., "skew": ..., "u0": ..., "v0": ..., "distort_w": ...}
    extrinsics: {"rotation": [[...], [...], [...]], "center": [x, y, z]}
"""

from pathlib import Path
from typing import List, Tuple, Union

import simplejson as json

import mvtrack.utils.io as io_utils
import mvtrack.utils.logger as logger_utils
from mvtrack.common.camera import Camera, CameraPose, Intrinsics

logger = logger_utils.get_logger()


class ViewLoadError(RuntimeError):
    """The calibration of a view is missing or malformed."""


class ViewLoader:
    """Loads per-view intrinsics and extrinsics by view name.

    Args:
        views_path: text file listing the view names.
        intrinsics_format: printf-style path format for intrinsics files, with one `%s` for the view name.
        extrinsics_format: printf-style path format for extrinsics files, with one `%s` for the view name.
    """

    def __init__(self, views_path: Union[str, Path], intrinsics_format: str, extrinsics_format: str) -> None:
        try:
            self._view_names: List[str] = io_utils.read_lines(views_path)
        except OSError as err:
            raise ViewLoadError(f"Could not load view names from {views_path}") from err
        self._intrinsics_format = intrinsics_format
        self._extrinsics_format = extrinsics_format
        logger.info("Matching across %d views", len(self._view_names))

    def __len__(self) -> int:
        """The number of views."""
        return len(self._view_names)

    def view_names(self) -> List[str]:
        return list(self._view_names)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self):
            raise ValueError(f"View index {index} out of range for {len(self)} views")

    def _read_view_file(self, path_format: str, index: int) -> dict:
        self._check_index(index)
        fpath = path_format % self._view_names[index]
        try:
            return io_utils.read_json_file(fpath)
        except (OSError, json.JSONDecodeError) as err:
            raise ViewLoadError(f"Could not load {fpath}") from err

    def get_intrinsics(self, index: int) -> Intrinsics:
        data = self._read_view_file(self._intrinsics_format, index)
        try:
            return Intrinsics.from_dict(data)
        except (KeyError, TypeError, ValueError) as err:
            raise ViewLoadError(f"Invalid intrinsics for view {self._view_names[index]}") from err

    def get_pose(self, index: int) -> CameraPose:
        data = self._read_view_file(self._extrinsics_format, index)
        try:
            return CameraPose.from_dict(data)
        except (KeyError, TypeError, ValueError) as err:
            raise ViewLoadError(f"Invalid extrinsics for view {self._view_names[index]}") from err

    def get_camera(self, index: int) -> Camera:
        return Camera(self.get_intrinsics(index), self.get_pose(index))

    def get_reference_and_other_cameras(self, reference_index: int) -> Tuple[Camera, List[int], List[Camera]]:
        """Loads every view, split into the reference view and the others.

        Args:
            reference_index: index of the view the tracks were observed in.

        Returns:
            The reference camera, the indices of the other views, and their cameras in the same order.

        Raises:
            ValueError: if the reference index is out of range.
            ViewLoadError: if any view's calibration cannot be loaded.
        """
        self._check_index(reference_index)
        cameras = [self.get_camera(index) for index in range(len(self))]
        other_indices = [index for index in range(len(self)) if index != reference_index]
        return cameras[reference_index], other_indices, [cameras[index] for index in other_indices]
