"""Helpers for moving between Euclidean and homogeneous coordinates."""

import numpy as np


def convert_to_homogenous_coordinates(non_homogenous_coordinates: np.ndarray, weight: float = 1.0) -> np.ndarray:
    """Convert coordinates to homogenous system (by appending a column holding `weight`).

    Args:
        non_homogenous_coordinates: coordinates of shape (D,) or (N, D).
        weight: homogeneous weight; 1 for points, 0 for directions.

    Returns:
        Homogenous coordinates of shape (D+1,) or (N, D+1).
    """
    x = np.asarray(non_homogenous_coordinates, dtype=np.float64)
    if x.ndim == 1:
        return np.append(x, weight)
    if x.ndim != 2:
        raise TypeError("Input should be a single vector or a 2D array of vectors")
    return np.hstack((x, np.full((x.shape[0], 1), weight)))


def convert_from_homogenous_coordinates(homogenous_coordinates: np.ndarray) -> np.ndarray:
    """Divide out the last coordinate.

    Args:
        homogenous_coordinates: coordinates of shape (D+1,) or (N, D+1).

    Returns:
        Euclidean coordinates of shape (D,) or (N, D).
    """
    x = np.asarray(homogenous_coordinates, dtype=np.float64)
    if x.shape[-1] < 2:
        raise TypeError("Input should have at least 2 homogenous coordinates")
    return x[..., :-1] / x[..., -1:]


def is_orthonormal(matrix: np.ndarray, atol: float = 1e-6) -> bool:
    """Checks whether a square matrix is a proper rotation (orthonormal with determinant +1)."""
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    identity = np.eye(matrix.shape[0])
    return bool(np.allclose(matrix @ matrix.T, identity, atol=atol) and np.linalg.det(matrix) > 0)
