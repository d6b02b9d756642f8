"""
Point conditioning (normalization) for well-scaled linear systems.

Linear systems built from raw pixel coordinates mix entries of order 1 with
entries of order 1e6, which ruins their conditioning. Normalizing first:

    x_n = T @ x_h

with T a similarity (scale + translation):

    T = [[s, 0, -s*cx],
         [0, s, -s*cy],
         [0, 0,     1]]

moves the centroid to the origin and scales the cloud to a fixed average
distance from it (sqrt(2) in 2D, sqrt(d) in general).

Solvers then work in normalized coordinates and their models are mapped
back with an Unnormalizer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .exceptions import DegenerateConditioningError, PointSetMismatchError
from .types import FloatArray, as_homogeneous, from_homogeneous

logger = logging.getLogger(__name__)

# Spread below this (relative to the coordinate magnitude) counts as zero.
_SPREAD_EPS = 1e-12


def _check_points(points: FloatArray) -> FloatArray:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 1:
        raise PointSetMismatchError(f"Expected points shape (d, N) with N >= 1, got {points.shape}")
    return points


def _similarity(scales: FloatArray, center: FloatArray) -> FloatArray:
    d = scales.shape[0]
    T = np.eye(d + 1, dtype=np.float64)
    T[:d, :d] = np.diag(scales)
    T[:d, d] = -scales * center
    return T


def isotropic_preconditioner_from_points(points: FloatArray) -> FloatArray:
    """
    Similarity that centers `points` and brings their mean distance to
    the origin to sqrt(d).

    Raises DegenerateConditioningError if all points coincide.
    """
    points = _check_points(points)
    d = points.shape[0]

    center = points.mean(axis=1)
    mean_dist = float(np.mean(np.linalg.norm(points - center[:, None], axis=0)))

    magnitude = max(1.0, float(np.max(np.abs(center))))
    if not np.isfinite(mean_dist) or mean_dist <= _SPREAD_EPS * magnitude:
        logger.debug("isotropic preconditioner: zero spread, mean distance %.3g", mean_dist)
        raise DegenerateConditioningError(
            f"Point set of {points.shape[1]} points has zero spread (mean distance {mean_dist:.3g})")

    scale = np.sqrt(d) / mean_dist
    return _similarity(np.full(d, scale), center)


def preconditioner_from_points(points: FloatArray) -> FloatArray:
    """
    Anisotropic (per axis) Hartley preconditioner: every axis gets its own
    scale sqrt(2 / variance).

    Raises DegenerateConditioningError if any axis has zero variance,
    e.g. when all points share the same x coordinate.
    """
    points = _check_points(points)

    center = points.mean(axis=1)
    variance = points.var(axis=1)

    magnitude = max(1.0, float(np.max(np.abs(center))))
    if not np.all(np.isfinite(variance)) or np.any(variance <= (_SPREAD_EPS * magnitude) ** 2):
        logger.debug("anisotropic preconditioner: zero variance axis, variance %s", variance)
        raise DegenerateConditioningError(f"Point set has a zero-variance axis (variance {variance})")

    return _similarity(np.sqrt(2.0 / variance), center)


def apply_transformation_to_points(points: FloatArray, T: FloatArray) -> FloatArray:
    """Apply a (d+1)x(d+1) homogeneous transform to (d,N) points."""
    points = _check_points(points)
    d = points.shape[0]
    if T.shape != (d + 1, d + 1):
        raise PointSetMismatchError(f"Expected transform shape {(d + 1, d + 1)}, got {T.shape}")

    return from_homogeneous(T @ as_homogeneous(points))


def normalize_points(points: FloatArray, *, isotropic: bool = True) -> Tuple[FloatArray, FloatArray]:
    """
    Normalize a point set.

    Returns:
      (normalized_points, T) with normalized_points = T applied to points.
      Inputs are never modified.
    """
    if isotropic:
        T = isotropic_preconditioner_from_points(points)
    else:
        T = preconditioner_from_points(points)
    return apply_transformation_to_points(points, T), T


# ---------- Unnormalizers ----------
@dataclass(frozen=True)
class UnnormalizerInverse:
    """
    For models acting as point transforms, x2 = M @ x1 (affine, homography).

        x2_n = Mn @ x1_n,  x_n = T @ x   =>   M = T2^-1 @ Mn @ T1
    """

    def unnormalize(self, T1: FloatArray, T2: FloatArray, model: FloatArray) -> FloatArray:
        return np.linalg.solve(T2, model @ T1)


@dataclass(frozen=True)
class UnnormalizerTranspose:
    """
    For bilinear epipolar models, x2^T @ E @ x1 = 0 (essential, fundamental).

        x2_n^T @ En @ x1_n = x2^T @ (T2^T @ En @ T1) @ x1   =>   E = T2^T @ En @ T1
    """

    def unnormalize(self, T1: FloatArray, T2: FloatArray, model: FloatArray) -> FloatArray:
        return T2.T @ model @ T1
