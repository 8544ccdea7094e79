"""Camera model: intrinsic calibration with division-model distortion, and extrinsic pose.

Convention: the camera looks down its negative z-axis, i.e. a point is in front of a camera when its depth in the
camera frame is negative.
"""

from dataclasses import dataclass
from typing import Any, Dict, Sequence

import numpy as np
from gtsam import Cal3_S2, Rot3  # type: ignore

import mvtrack.utils.geometry as geometry_utils
from mvtrack.common.distortion import DivisionDistortion


@dataclass(frozen=True)
class Intrinsics:
    """Calibration matrix and lens distortion of one view.

    Args:
        calibration: pinhole calibration (focal lengths, skew, principal point).
        distortion: division-model distortion applied in calibrated coordinates.
    """

    calibration: Cal3_S2
    distortion: DivisionDistortion = DivisionDistortion()

    def __post_init__(self) -> None:
        if self.calibration.fx() == 0 or self.calibration.fy() == 0:
            raise ValueError("Focal lengths must be non-zero for the calibration matrix to be invertible")

    @classmethod
    def from_params(
        cls, fx: float, fy: float, u0: float, v0: float, distort_w: float = 0.0, skew: float = 0.0
    ) -> "Intrinsics":
        return cls(Cal3_S2(fx, fy, skew, u0, v0), DivisionDistortion(distort_w))

    @property
    def distort_w(self) -> float:
        return self.distortion.w

    def matrix(self) -> np.ndarray:
        """Returns the 3x3 calibration matrix K."""
        return self.calibration.K()

    def calibrate(self, uv: np.ndarray) -> np.ndarray:
        """Maps pixel point(s) of shape (2,) or (N, 2) to calibrated coordinates with K^-1."""
        K_inv = np.linalg.inv(self.matrix())
        uv_h = geometry_utils.convert_to_homogenous_coordinates(uv)
        return geometry_utils.convert_from_homogenous_coordinates(uv_h @ K_inv.T)

    def uncalibrate(self, x: np.ndarray) -> np.ndarray:
        """Maps calibrated point(s) of shape (2,) or (N, 2) to pixel coordinates with K."""
        x_h = geometry_utils.convert_to_homogenous_coordinates(x)
        return geometry_utils.convert_from_homogenous_coordinates(x_h @ self.matrix().T)

    def distort_and_uncalibrate(self, x: np.ndarray) -> np.ndarray:
        return self.uncalibrate(self.distortion.distort(x))

    def project_and_distort(self, x_h: np.ndarray) -> np.ndarray:
        """Projects a point given in camera-frame homogeneous image coordinates to a distorted pixel.

        Only the visible part of a line is ever projected, so a point on (or, through round-off, behind) the
        principal plane is taken to be the point at infinity reached from the visible side. Its calibrated coordinates
        x_h[:2] / x_h[2] recede along -x_h[:2] as the depth rises to zero from below.

        Args:
            x_h: homogeneous 3-vector in the camera frame.

        Returns:
            Pixel coordinates of shape (2,).
        """
        x_h = np.asarray(x_h, dtype=np.float64)
        if x_h[2] >= 0:
            x = self.distortion.distort_at_infinity(-x_h[:2])
        else:
            x = self.distortion.distort(x_h[:2] / x_h[2])
        return self.uncalibrate(x)

    def to_dict(self) -> Dict[str, float]:
        return {
            "fx": self.calibration.fx(),
            "fy": self.calibration.fy(),
            "skew": self.calibration.skew(),
            "u0": self.calibration.px(),
            "v0": self.calibration.py(),
            "distort_w": self.distort_w,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Intrinsics":
        return cls.from_params(
            fx=float(data["fx"]),
            fy=float(data["fy"]),
            u0=float(data["u0"]),
            v0=float(data["v0"]),
            distort_w=float(data.get("distort_w", 0.0)),
            skew=float(data.get("skew", 0.0)),
        )


@dataclass(frozen=True)
class CameraPose:
    """Extrinsic parameters of one view.

    Args:
        cRw: rotation from the world frame into the camera frame.
        wC: camera center, in world coordinates.
    """

    cRw: Rot3
    wC: np.ndarray

    def __post_init__(self) -> None:
        center = np.asarray(self.wC, dtype=np.float64).reshape(-1)
        if center.shape != (3,):
            raise ValueError(f"Camera center must be a 3-vector, got shape {center.shape}")
        object.__setattr__(self, "wC", center)

    @classmethod
    def from_matrix(cls, rotation: Sequence[Sequence[float]], center: Sequence[float]) -> "CameraPose":
        """Builds a pose from a plain 3x3 rotation matrix, which must be a proper rotation."""
        R = np.asarray(rotation, dtype=np.float64)
        if R.shape != (3, 3) or not geometry_utils.is_orthonormal(R):
            raise ValueError("Camera rotation must be an orthonormal 3x3 matrix with determinant +1")
        return cls(Rot3(R), np.asarray(center, dtype=np.float64))

    def rotation_matrix(self) -> np.ndarray:
        return self.cRw.matrix()

    def translation(self) -> np.ndarray:
        """Returns t = -R c, the world origin expressed in the camera frame."""
        return -self.rotation_matrix() @ self.wC

    def matrix(self) -> np.ndarray:
        """Returns the 3x4 extrinsic matrix [R | t]."""
        return np.hstack((self.rotation_matrix(), self.translation().reshape(3, 1)))

    def to_dict(self) -> Dict[str, Any]:
        return {"rotation": self.rotation_matrix().tolist(), "center": self.wC.tolist()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CameraPose":
        return cls.from_matrix(data["rotation"], data["center"])


@dataclass(frozen=True)
class Camera:
    """A calibrated view: intrinsics composed with an extrinsic pose."""

    intrinsics: Intrinsics
    pose: CameraPose

    def projection_matrix(self) -> np.ndarray:
        """Returns the 3x4 projection matrix K [R | t], recomputed on every call."""
        return self.intrinsics.matrix() @ self.pose.matrix()
