"""
Affine model utilities (homogeneous form), 2D and 3D.

We estimate an affine transform M such that:

    x2 ≈ M @ x1     (homogeneous coordinates)

2D, 6 unknowns (a, b, tx, c, d, ty):

    M = [[a, b, tx],
         [c, d, ty],
         [0, 0,  1]]

3D, 12 unknowns (a..i, tx, ty, tz):

    M = [[a, b, c, tx],
         [d, e, f, ty],
         [g, h, i, tz],
         [0, 0, 0,  1]]

The fit is a linear least-squares solve followed by an acceptance test:
a model is returned only if it reproduces the targets within
`expected_precision`. This turns the least-squares fit into an accept/reject
decision, so an almost-affine sample passes and an inconsistent one does not.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from .exceptions import PointSetMismatchError, SampleSizeError
from .types import FloatArray, Mat3x3, Mat4x4, Points2D, Points3D, as_homogeneous, is_valid_square

logger = logging.getLogger(__name__)

# Default acceptance precision, the usual "dummy precision" of double math.
DEFAULT_AFFINE_PRECISION = 1e-12


def _check_pair(x1: FloatArray, x2: FloatArray, dim: int) -> None:
    if x1.shape != x2.shape:
        raise PointSetMismatchError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
    if x1.ndim != 2 or x1.shape[0] != dim:
        raise PointSetMismatchError(f"Expected points shape ({dim}, N), got {x1.shape}")


def _is_approx(lhs: FloatArray, rhs: FloatArray, precision: float) -> bool:
    """
    Relative vector equality:

        ||lhs - rhs|| <= precision * min(||lhs||, ||rhs||)
    """
    diff = float(np.linalg.norm(lhs - rhs))
    scale = min(float(np.linalg.norm(lhs)), float(np.linalg.norm(rhs)))
    return diff <= precision * scale


def _affine_from_correspondences(
        x1: FloatArray,
        x2: FloatArray,
        dim: int,
        expected_precision: float,
) -> Optional[FloatArray]:
    x1 = np.asarray(x1, dtype=np.float64)
    x2 = np.asarray(x2, dtype=np.float64)
    _check_pair(x1, x2, dim)

    # Minimal sample: 3 points in 2D, 4 points in 3D.
    # Fewer is a caller error, not a "no solution" outcome.
    n = x1.shape[1]
    if n < dim + 1:
        raise SampleSizeError(n, dim + 1)

    # 2D: 6 unknowns, 3D: 12 unknowns
    n_unknowns = dim * (dim + 1)

    # Each correspondence gives `dim` equations, one per output coordinate:
    #   x2[r] = M[r, :dim] @ x1 + M[r, dim]
    # Unknown vector theta = M[:dim, :].ravel() (row-major), so the row for
    # output coordinate r is [x1^T, 1] placed in block r.
    #
    # 2D example, point i gives rows 2i and 2i+1:
    #   [x, y, 1, 0, 0, 0]  -> x'
    #   [0, 0, 0, x, y, 1]  -> y'
    x1h = as_homogeneous(x1).T      # (N, dim+1), each row [x, y, (z,) 1]
    A = np.zeros((dim * n, n_unknowns), dtype=np.float64)
    for r in range(dim):
        # Rows r, r+dim, r+2*dim, ... are the equations of output coordinate r,
        # their non-zero block sits in columns of M row r.
        A[r::dim, r * (dim + 1):(r + 1) * (dim + 1)] = x1h

    # Targets interleaved the same way: [x2_0, y2_0, (z2_0,) x2_1, ...]
    b_vec = x2.T.reshape(-1)

    # Least squares solve:
    # theta minimizes ||A theta - b||^2 across all correspondences.
    try:
        theta, _, rank, _ = np.linalg.lstsq(A, b_vec, rcond=None)
    except np.linalg.LinAlgError:
        return None

    # Collinear (2D) / coplanar (3D) or repeated points leave directions of
    # the linear part unconstrained.
    if rank < n_unknowns:
        logger.debug("affine %dD: rank deficient system (rank %d < %d)", dim, rank, n_unknowns)
        return None

    # Accept only if the fit reproduces the targets within precision,
    # otherwise the sample is not (almost) affine.
    if not _is_approx(A @ theta, b_vec, expected_precision):
        logger.debug("affine %dD: residual above expected precision %.3g", dim, expected_precision)
        return None

    # Back to homogeneous form, last row [0, ..., 0, 1]
    M = np.eye(dim + 1, dtype=np.float64)
    M[:dim, :] = theta.reshape(dim, dim + 1)
    if not is_valid_square(M, dim + 1):
        return None
    return M


def affine2d_from_correspondences_linear(
        x1: Points2D,
        x2: Points2D,
        expected_precision: float = DEFAULT_AFFINE_PRECISION,
) -> Optional[Mat3x3]:
    """
    Fit a 2D affine transform from N >= 3 non-collinear correspondences.

    x1, x2: (2,N) source and target points

    Returns:
      3x3 affine matrix, or None if degenerate or not affine within precision.

    Raises SampleSizeError for fewer than 3 correspondences.
    """
    return _affine_from_correspondences(x1, x2, 2, expected_precision)


def affine3d_from_correspondences_linear(
        x1: Points3D,
        x2: Points3D,
        expected_precision: float = DEFAULT_AFFINE_PRECISION,
) -> Optional[Mat4x4]:
    """
    Fit a 3D affine transform from N >= 4 non-coplanar correspondences.

    x1, x2: (3,N) source and target points

    Returns:
      4x4 affine matrix, or None if degenerate or not affine within precision.

    Raises SampleSizeError for fewer than 4 correspondences.
    """
    return _affine_from_correspondences(x1, x2, 3, expected_precision)


# ---------- Apply transform + residuals ----------
def apply_affine(M: FloatArray, points: FloatArray) -> FloatArray:
    """
    Apply a (d+1)x(d+1) affine transform to (d,N) points (or one (d,) point).
    The last row of an affine matrix is [0,...,0,1], so no division is needed.
    """
    points = np.asarray(points, dtype=np.float64)
    d = points.shape[0]
    if M.shape != (d + 1, d + 1):
        raise PointSetMismatchError(f"Expected M shape {(d + 1, d + 1)}, got {M.shape}")
    return M[:d, :d] @ points + (M[:d, d] if points.ndim == 1 else M[:d, d:])


def affine_squared_residuals(M: FloatArray, x1: FloatArray, x2: FloatArray) -> FloatArray:
    """
    Per-correspondence squared distances:

        e_i = || M @ x1_i - x2_i ||^2

    Returns shape (N,)
    """
    x1 = np.asarray(x1, dtype=np.float64)
    x2 = np.asarray(x2, dtype=np.float64)
    if x1.shape != x2.shape:
        raise PointSetMismatchError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
    diff = apply_affine(M, x1) - x2
    return np.sum(diff * diff, axis=0)
