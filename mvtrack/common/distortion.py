"""Single-parameter division model for radial lens distortion.

Coordinates are calibrated (intrinsics removed). A distorted point x_d maps to the undistorted point

    x_u = x_d / (1 + w * |x_d|^2),

with w <= 0. The map is only invertible inside the disc |x_d| < 1 / sqrt(-w); on its boundary the undistorted point
is at infinity, which is why directions (points with zero homogeneous weight) have a finite distorted image.

References:
1. A. Fitzgibbon. Simultaneous linear estimation of multiple view geometry and lens distortion. CVPR 2001.
"""

from dataclasses import dataclass

import numpy as np

# Directions shorter than this cannot be normalized.
DIRECTION_NORM_TOL = 1e-12


def _as_points(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.shape[-1] != 2:
        raise TypeError(f"Expected points of shape (2,) or (N, 2), got {x.shape}")
    return x


def _squared_radius(x: np.ndarray) -> np.ndarray:
    return np.sum(x * x, axis=-1, keepdims=True)


@dataclass(frozen=True)
class DivisionDistortion:
    """Division-model distortion with a single parameter.

    Args:
        w: distortion parameter. Zero means no distortion, negative values give barrel distortion.
    """

    w: float = 0.0

    def __post_init__(self) -> None:
        if not np.isfinite(self.w) or self.w > 0:
            raise ValueError(f"Division model parameter must be finite and non-positive, got w={self.w}")

    def max_distorted_radius(self) -> float:
        """Radius of the circle onto which points at infinity are distorted (infinite when w == 0)."""
        if self.w == 0:
            return np.inf
        return 1.0 / np.sqrt(-self.w)

    def is_undistortable(self, x_d: np.ndarray) -> np.ndarray:
        """Checks whether distorted point(s) lie strictly inside the invertible domain.

        Args:
            x_d: distorted calibrated point of shape (2,), or (N, 2) points.

        Returns:
            Boolean scalar, or boolean array of shape (N,).
        """
        x_d = _as_points(x_d)
        valid = 1.0 + self.w * _squared_radius(x_d) > 0
        return valid[..., 0]

    def undistort(self, x_d: np.ndarray) -> np.ndarray:
        """Removes distortion from point(s) in the invertible domain.

        Raises:
            ValueError: if any point fails `is_undistortable`.
        """
        x_d = _as_points(x_d)
        if not np.all(self.is_undistortable(x_d)):
            raise ValueError("Cannot undistort points outside the domain of the division model")
        return x_d / (1.0 + self.w * _squared_radius(x_d))

    def distort(self, x_u: np.ndarray) -> np.ndarray:
        """Applies distortion to finite undistorted point(s).

        The radius equation w r_u r_d^2 - r_d + r_u = 0 is solved for the root that tends to r_u as w -> 0, written
        in a form that does not divide by r_u.
        """
        x_u = _as_points(x_u)
        scale = 2.0 / (1.0 + np.sqrt(1.0 - 4.0 * self.w * _squared_radius(x_u)))
        return x_u * scale

    def distort_at_infinity(self, direction: np.ndarray) -> np.ndarray:
        """Distorted position of the point at infinity reached by travelling along `direction`.

        Raises:
            ValueError: if the model has no distortion (the image is at infinity too), or direction is zero.
        """
        direction = _as_points(direction)
        if self.w == 0:
            raise ValueError("Points at infinity have no finite image without distortion")
        norm = np.linalg.norm(direction, axis=-1, keepdims=True)
        if np.any(norm < DIRECTION_NORM_TOL):
            raise ValueError("Cannot distort a point at infinity with a zero direction")
        return direction / norm * self.max_distorted_radius()


def distort(x_u: np.ndarray, w: float) -> np.ndarray:
    return DivisionDistortion(w).distort(x_u)


def undistort(x_d: np.ndarray, w: float) -> np.ndarray:
    return DivisionDistortion(w).undistort(x_d)


def is_undistortable(x_d: np.ndarray, w: float) -> np.ndarray:
    return DivisionDistortion(w).is_undistortable(x_d)


def distort_at_infinity(direction: np.ndarray, w: float) -> np.ndarray:
    return DivisionDistortion(w).distort_at_infinity(direction)
