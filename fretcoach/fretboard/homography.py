"""
Homography estimation between the camera image and the rectified fretboard plane
"""
import logging
import math
import numpy as np
from typing import List, Sequence, Tuple

from config.coach_config import SINGULAR_EPSILON
from fretcoach.types import Point2D

logger = logging.getLogger(__name__)


class InvalidPointSetError(ValueError):
    """Raised when a homography is requested from anything but 4 point pairs"""


def identity_homography() -> np.ndarray:
    """Fallback transform used when no geometry can be solved"""
    return np.eye(3, dtype=np.float64)


def compute_homography(src_points: Sequence[Point2D],
                       dst_points: Sequence[Point2D]) -> np.ndarray:
    """
    Compute the 3x3 projective transform mapping src_points onto dst_points

    Uses the normalized Direct Linear Transform with h33 fixed to 1, solved by
    Gaussian elimination with partial pivoting.

    Args:
        src_points: Exactly 4 image-space points
        dst_points: Exactly 4 corresponding target points

    Returns:
        3x3 homography matrix (identity if the system is singular)
    """
    if len(src_points) != 4 or len(dst_points) != 4:
        raise InvalidPointSetError(
            f"Homography requires exactly 4 point pairs, got {len(src_points)} and {len(dst_points)}"
        )

    src_norm, src_t = _normalize_points(src_points)
    dst_norm, dst_t = _normalize_points(dst_points)

    a = np.zeros((8, 8), dtype=np.float64)
    b = np.zeros(8, dtype=np.float64)

    for i in range(4):
        x, y = src_norm[i]
        u, v = dst_norm[i]
        a[2 * i] = [x, y, 1, 0, 0, 0, -u * x, -u * y]
        a[2 * i + 1] = [0, 0, 0, x, y, 1, -v * x, -v * y]
        b[2 * i] = u
        b[2 * i + 1] = v

    h = _solve_linear_system(a, b)
    if h is None:
        logger.warning("Singular homography system, falling back to identity")
        return identity_homography()

    h_norm = np.append(h, 1.0).reshape(3, 3)

    # Undo the conditioning: H = T_dst^-1 * Hn * T_src
    homography = np.linalg.inv(dst_t) @ h_norm @ src_t

    if abs(homography[2, 2]) > SINGULAR_EPSILON:
        homography = homography / homography[2, 2]

    return homography


def _normalize_points(points: Sequence[Point2D]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Translate points to their centroid and scale to a mean distance of sqrt(2)

    Returns:
        (normalized Nx2 array, 3x3 conditioning matrix)
    """
    coords = np.array([[p.x, p.y] for p in points], dtype=np.float64)
    centroid = coords.mean(axis=0)

    mean_dist = np.mean(np.linalg.norm(coords - centroid, axis=1))
    scale = math.sqrt(2) / mean_dist if mean_dist > SINGULAR_EPSILON else 1.0

    transform = np.array([
        [scale, 0, -centroid[0] * scale],
        [0, scale, -centroid[1] * scale],
        [0, 0, 1],
    ], dtype=np.float64)

    return (coords - centroid) * scale, transform


def _solve_linear_system(a: np.ndarray, b: np.ndarray):
    """
    Gaussian elimination with partial pivoting

    Returns:
        Solution vector, or None when a pivot falls below SINGULAR_EPSILON
    """
    n = a.shape[0]
    augmented = np.hstack([a, b.reshape(-1, 1)]).astype(np.float64)

    for i in range(n):
        pivot_row = i + int(np.argmax(np.abs(augmented[i:, i])))
        if pivot_row != i:
            augmented[[i, pivot_row]] = augmented[[pivot_row, i]]

        if abs(augmented[i, i]) < SINGULAR_EPSILON:
            return None

        factors = augmented[i + 1:, i] / augmented[i, i]
        augmented[i + 1:, i:] -= np.outer(factors, augmented[i, i:])

    x = np.zeros(n, dtype=np.float64)
    for i in range(n - 1, -1, -1):
        x[i] = (augmented[i, n] - augmented[i, i + 1:n] @ x[i + 1:]) / augmented[i, i]

    return x


def apply_homography(matrix: np.ndarray, point: Point2D) -> Point2D:
    """Transform a point in homogeneous coordinates (zero point when w vanishes)"""
    x, y = point.x, point.y
    w = matrix[2, 0] * x + matrix[2, 1] * y + matrix[2, 2]

    if abs(w) < SINGULAR_EPSILON:
        return Point2D(0.0, 0.0)

    return Point2D(
        float((matrix[0, 0] * x + matrix[0, 1] * y + matrix[0, 2]) / w),
        float((matrix[1, 0] * x + matrix[1, 1] * y + matrix[1, 2]) / w),
    )


def project_points(matrix: np.ndarray, points: Sequence[Point2D]) -> List[Point2D]:
    """Project image-space points to the rectified fretboard plane"""
    return [apply_homography(matrix, point) for point in points]


def invert_homography(matrix: np.ndarray) -> np.ndarray:
    """Inverse transform (rectified plane back to image space)"""
    try:
        inverse = np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        logger.warning("Homography is not invertible, using identity")
        return identity_homography()

    if abs(inverse[2, 2]) > SINGULAR_EPSILON:
        inverse = inverse / inverse[2, 2]

    return inverse
