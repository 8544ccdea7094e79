"""Finds the extent of a viewing ray in another view and quantizes it into evenly spaced candidate points.

A calibrated point in the reference view defines a ray {c + lambda v : lambda >= 0}. Its image in another view with
extrinsic matrix P is the line of homogeneous points A + lambda B, where A = P [c; 1] and B = P [v; 0]. The depth
z(lambda) = a3 + lambda b3 decides visibility: the point is in front of the other camera when z < 0.

The visible part of the line is walked from its far end (the vanishing point, or the distorted image of the point at
infinity where the ray crosses the principal plane) towards lambda_min, placing a candidate every `quantization_step`
pixels in the distorted image. Each step is a bisection on the pixel distance to the previous candidate.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, NamedTuple, Tuple

import numpy as np
import scipy.optimize

import mvtrack.utils.geometry as geometry_utils
import mvtrack.utils.logger as logger_utils
from mvtrack.common.camera import Camera, CameraPose, Intrinsics
from mvtrack.common.distortion import DIRECTION_NORM_TOL
from mvtrack.common.multiview_track import CandidateSequence
from mvtrack.common.ray import Ray, ray_through_calibrated_point

logger = logger_utils.get_logger()

# Smallest relative tolerance accepted by scipy.optimize.bisect.
BISECTION_RTOL = 4 * np.finfo(np.float64).eps


class LimitCycleError(RuntimeError):
    """Bisection returned the previous upper bracket, so the walk along the ray cannot make progress.

    This does not happen for a well-posed, monotone residual and points at bad camera or distortion parameters.
    """


class RayExtentConvergenceError(RuntimeError):
    """An iteration cap was reached while searching along a ray."""


class RayVisibility(Enum):
    """Which part of a ray's projection is visible in another view.

    NOT_VISIBLE: the ray is entirely behind the other camera.
    FRONT_TO_VANISHING_POINT: starts in front (a3 < 0) and tends to a vanishing point (b3 < 0).
    FRONT_TO_INFINITY: starts in front (a3 < 0) and crosses to the back at infinity in the image (b3 >= 0).
    INFINITY_TO_VANISHING_POINT: starts behind (a3 >= 0), enters at infinity and tends to a vanishing point (b3 < 0).
    """

    NOT_VISIBLE = 0
    FRONT_TO_VANISHING_POINT = 1
    FRONT_TO_INFINITY = 2
    INFINITY_TO_VANISHING_POINT = 3

    def has_vanishing_point(self) -> bool:
        return self in (RayVisibility.FRONT_TO_VANISHING_POINT, RayVisibility.INFINITY_TO_VANISHING_POINT)

    def reaches_infinity(self) -> bool:
        return self in (RayVisibility.FRONT_TO_INFINITY, RayVisibility.INFINITY_TO_VANISHING_POINT)


class ProjectedRay(NamedTuple):
    """Homogeneous image line A + lambda B of a ray, in another camera's frame (before intrinsics)."""

    a: np.ndarray
    b: np.ndarray

    def at(self, lam: float) -> np.ndarray:
        return self.a + lam * self.b

    @property
    def a3(self) -> float:
        return float(self.a[2])

    @property
    def b3(self) -> float:
        return float(self.b[2])


def project_ray(ray: Ray, pose: CameraPose) -> ProjectedRay:
    """Projects a ray with the extrinsics of another view.

    Distortion acts on calibrated coordinates, so the intrinsics are applied later, after distortion.
    """
    P = pose.matrix()
    a = P @ geometry_utils.convert_to_homogenous_coordinates(ray.center, weight=1.0)
    b = P @ geometry_utils.convert_to_homogenous_coordinates(ray.direction, weight=0.0)
    return ProjectedRay(a, b)


def classify_visibility(projected: ProjectedRay) -> RayVisibility:
    """Case analysis on the signs of the depth at the ray's start (a3) and its rate of change (b3).

    With a3 >= 0 and b3 >= 0 the depth never becomes negative for lambda > 0, so the ray is not visible.
    """
    a3, b3 = projected.a3, projected.b3
    if a3 >= 0 and b3 >= 0:
        return RayVisibility.NOT_VISIBLE
    if a3 < 0:
        return RayVisibility.FRONT_TO_VANISHING_POINT if b3 < 0 else RayVisibility.FRONT_TO_INFINITY
    return RayVisibility.INFINITY_TO_VANISHING_POINT


def compute_lambda_min(projected: ProjectedRay) -> float:
    """Smallest ray parameter whose image is visible: 0 if the ray starts in front, else where it crosses over."""
    if projected.a3 < 0:
        return 0.0
    return -projected.a3 / projected.b3


def passes_through_center(projected: ProjectedRay) -> bool:
    """Whether the ray passes through the other camera's center on its way to or from the principal plane.

    The homogeneous image A + lambda B then vanishes where the depth reaches zero, so the visible part of the ray
    collapses onto the epipole and has no direction in which to recede to infinity.
    """
    if projected.b3 == 0:
        return False
    lam_cross = -projected.a3 / projected.b3
    scale = np.linalg.norm(projected.a) + abs(lam_cross) * np.linalg.norm(projected.b)
    return bool(np.linalg.norm(projected.at(lam_cross)[:2]) <= DIRECTION_NORM_TOL * scale)


def distance_residual(
    lam: float, projected: ProjectedRay, anchor: np.ndarray, delta: float, intrinsics: Intrinsics
) -> float:
    """Pixel distance of the ray's image at `lam` from `anchor`, minus `delta`."""
    uv = intrinsics.project_and_distort(projected.at(lam))
    return float(np.linalg.norm(uv - anchor)) - delta


def quantize_curve(
    curve_fn: Callable[[float], np.ndarray],
    lambda_min: float,
    lambda_hi: float,
    anchor: np.ndarray,
    delta: float,
    xtol: float = 1e-12,
    rtol: float = BISECTION_RTOL,
    max_bisection_iterations: int = 200,
    max_num_candidates: int = 100000,
) -> CandidateSequence:
    """Walks an image curve from `lambda_hi` down to `lambda_min`, placing a point every `delta` pixels.

    The pixel distance from the current anchor must decrease monotonically over [lambda_min, lambda_hi], and the
    residual must be negative at `lambda_hi`.

    Args:
        curve_fn: maps a ray parameter to a pixel position.
        lambda_min: near end of the curve.
        lambda_hi: initial upper bracket, at the far end of the curve.
        anchor: pixel position the first candidate is measured from.
        delta: pixel spacing between consecutive candidates.
        xtol: absolute tolerance of the bisection.
        rtol: relative tolerance of the bisection.
        max_bisection_iterations: iteration cap of a single bisection.
        max_num_candidates: cap on the length of the sequence.

    Returns:
        Candidates ordered by decreasing ray parameter.

    Raises:
        LimitCycleError: if a bisection returns the previous upper bracket.
        RayExtentConvergenceError: if a bisection fails or too many candidates are produced.
    """
    x = np.asarray(anchor, dtype=np.float64)
    points: List[np.ndarray] = []
    lambdas: List[float] = []

    def residual(lam: float) -> float:
        return float(np.linalg.norm(curve_fn(lam) - x)) - delta

    while residual(lambda_min) >= 0:
        if len(lambdas) >= max_num_candidates:
            raise RayExtentConvergenceError(f"Ray extent exceeded {max_num_candidates} candidates")

        try:
            lam = scipy.optimize.bisect(
                residual, lambda_min, lambda_hi, xtol=xtol, rtol=rtol, maxiter=max_bisection_iterations
            )
        except (RuntimeError, ValueError) as err:
            raise RayExtentConvergenceError(f"Bisection failed on [{lambda_min}, {lambda_hi}]") from err

        if lam >= lambda_hi or np.isclose(lam, lambda_hi, rtol=rtol, atol=0.0):
            raise LimitCycleError(f"Entered limit cycle at lambda={lambda_hi}")

        lambda_hi = lam
        x = curve_fn(lam)
        points.append(x)
        lambdas.append(lam)
        logger.debug("x(%s) => %s", lam, x)

    if not lambdas:
        return CandidateSequence.empty()
    return CandidateSequence(np.stack(points), np.array(lambdas))


@dataclass(frozen=True)
class RayExtentSearch:
    """Quantizes the visible, distortion-valid projection of viewing rays into other views.

    Args:
        quantization_step: pixel spacing between consecutive candidates.
        bisection_xtol: absolute tolerance on the ray parameter for each bisection.
        max_bisection_iterations: iteration cap of a single bisection.
        max_doubling_iterations: iteration cap when growing a finite upper bracket towards a vanishing point.
        max_num_candidates: cap on the number of candidates per ray and view.
    """

    quantization_step: float = 1.0
    bisection_xtol: float = 1e-12
    max_bisection_iterations: int = 200
    max_doubling_iterations: int = 1000
    max_num_candidates: int = 100000

    def __post_init__(self) -> None:
        if not self.quantization_step > 0:
            raise ValueError(f"Quantization step must be positive, got {self.quantization_step}")
        if not self.bisection_xtol > 0:
            raise ValueError(f"Bisection tolerance must be positive, got {self.bisection_xtol}")

    def find_anchor(
        self, projected: ProjectedRay, visibility: RayVisibility, lambda_min: float, intrinsics: Intrinsics
    ) -> Tuple[float, np.ndarray]:
        """Finds the far end of the visible part of the ray's image.

        Returns:
            lambda_hi: finite ray parameter at which the residual measured from the anchor is negative.
            anchor: pixel position of the far end.

        Raises:
            RayExtentConvergenceError: if no finite upper bracket is found within the doubling cap.
        """
        if visibility.has_vanishing_point():
            # The lambda-independent part of A + lambda B.
            anchor = intrinsics.project_and_distort(projected.b)
        elif projected.b3 > 0:
            # Crosses the principal plane; the point at infinity is approached from the visible side.
            lambda_hi = -projected.a3 / projected.b3
            direction = -projected.at(lambda_hi)[:2]
            anchor = intrinsics.uncalibrate(intrinsics.distortion.distort_at_infinity(direction))
            return lambda_hi, anchor
        else:
            # Constant depth: the image recedes along the direction of B.
            anchor = intrinsics.uncalibrate(intrinsics.distortion.distort_at_infinity(-projected.b[:2]))

        # lambda = infinity cannot be used for bisection, so find a lambda which is big enough.
        lam = 1.0
        for _ in range(self.max_doubling_iterations):
            if lam > lambda_min and distance_residual(lam, projected, anchor, self.quantization_step, intrinsics) < 0:
                return lam, anchor
            lam *= 2
        raise RayExtentConvergenceError(
            f"No finite upper bracket found within {self.max_doubling_iterations} doublings"
        )

    def find_extent(
        self, calibrated_point: np.ndarray, reference_pose: CameraPose, other_camera: Camera
    ) -> CandidateSequence:
        """Quantizes the projection of one point's viewing ray into another view.

        Args:
            calibrated_point: calibrated, undistorted point in the reference view, of shape (2,).
            reference_pose: pose of the reference view.
            other_camera: the view to search in.

        Returns:
            Candidates ordered from the far end of the ray towards its near end; empty if the ray is not visible.

        Raises:
            LimitCycleError: if the walk along the ray stops making progress.
            RayExtentConvergenceError: if an iteration cap is reached.
        """
        ray = ray_through_calibrated_point(calibrated_point, reference_pose)
        projected = project_ray(ray, other_camera.pose)
        visibility = classify_visibility(projected)
        intrinsics = other_camera.intrinsics

        if visibility == RayVisibility.NOT_VISIBLE:
            logger.debug("Ray is not observed")
            return CandidateSequence.empty()

        if visibility.reaches_infinity() and passes_through_center(projected):
            logger.debug("Ray passes through the camera center; its image is the epipole")
            return CandidateSequence.empty()

        if visibility.reaches_infinity() and intrinsics.distort_w == 0:
            logger.warning("Ray reaches infinity in a view without distortion; its image is unbounded")
            return CandidateSequence.empty()

        logger.debug("Ray visibility: %s", visibility.name)
        lambda_min = compute_lambda_min(projected)
        lambda_hi, anchor = self.find_anchor(projected, visibility, lambda_min, intrinsics)

        candidates = quantize_curve(
            curve_fn=lambda lam: intrinsics.project_and_distort(projected.at(lam)),
            lambda_min=lambda_min,
            lambda_hi=lambda_hi,
            anchor=anchor,
            delta=self.quantization_step,
            xtol=self.bisection_xtol,
            max_bisection_iterations=self.max_bisection_iterations,
            max_num_candidates=self.max_num_candidates,
        )
        logger.debug("Quantized ray into %d positions", candidates.num_candidates())
        return candidates
