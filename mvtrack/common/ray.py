"""Viewing rays of calibrated image points."""

from typing import NamedTuple

import numpy as np

from mvtrack.common.camera import CameraPose


class Ray(NamedTuple):
    """Half-line {center + lambda * direction : lambda >= 0} in world coordinates.

    The direction is not normalized. lambda = 0 is the camera center of the view the ray was cast from.
    """

    center: np.ndarray
    direction: np.ndarray

    def point_at(self, lam: float) -> np.ndarray:
        return self.center + lam * self.direction


def ray_through_calibrated_point(w: np.ndarray, pose: CameraPose) -> Ray:
    """Casts the viewing ray through an undistorted, calibrated point.

    Points X with R (X - c) proportional to (w, 1) satisfy (R_xy - w R_z)(X - c) = 0. The 2x3 system has a
    one-dimensional null space, which is spanned by the cross product of its rows. The negated cross product points
    into the scene, since depth is negative in front of the camera.

    Args:
        w: calibrated, undistorted point of shape (2,).
        pose: pose of the camera that observed the point.

    Returns:
        Ray from the camera center through the point.
    """
    w = np.asarray(w, dtype=np.float64).reshape(2)
    R = pose.rotation_matrix()
    A = R[0:2, :] - np.outer(w, R[2, :])
    v = -np.cross(A[0], A[1])
    return Ray(center=pose.wC.copy(), direction=v)
