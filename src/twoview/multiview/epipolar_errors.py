"""
Per-correspondence residuals for bilinear epipolar models (E or F).

All functors score one correspondence:

    error(model, p1, p2) -> float >= 0

with p1, p2 inhomogeneous 2D points of shape (2,). The epipolar constraint
x2^T E x1 = 0 holds exactly for a perfect model; the functors differ in how
they turn the algebraic residual into a distance.

A zero epipolar-line gradient makes the geometric variants undefined; they
return inf so the correspondence is classified as an outlier.
"""
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .types import FloatArray, Mat3x3, as_homogeneous


def _epipolar_terms(model: Mat3x3, p1: FloatArray, p2: FloatArray):
    x1 = as_homogeneous(p1)
    x2 = as_homogeneous(p2)
    line2 = model @ x1      # epipolar line of p1 in image 2
    line1 = model.T @ x2    # epipolar line of p2 in image 1
    residual = float(x2 @ line2)
    return residual, line1, line2


@dataclass(frozen=True)
class AlgebraicEpipolarError:
    """Squared algebraic residual (x2^T E x1)^2."""

    def error(self, model: Mat3x3, p1: FloatArray, p2: FloatArray) -> float:
        residual, _, _ = _epipolar_terms(model, p1, p2)
        return residual * residual


@dataclass(frozen=True)
class SampsonError:
    """
    First-order approximation of the squared geometric reprojection error:

        (x2^T E x1)^2 / ((E x1)_0^2 + (E x1)_1^2 + (E^T x2)_0^2 + (E^T x2)_1^2)
    """

    def error(self, model: Mat3x3, p1: FloatArray, p2: FloatArray) -> float:
        residual, line1, line2 = _epipolar_terms(model, p1, p2)
        denom = line2[0] ** 2 + line2[1] ** 2 + line1[0] ** 2 + line1[1] ** 2
        if denom <= 0.0:
            return float("inf")
        return float(residual * residual / denom)


@dataclass(frozen=True)
class EpipolarDistanceError:
    """Squared distance from p2 to the epipolar line of p1."""

    def error(self, model: Mat3x3, p1: FloatArray, p2: FloatArray) -> float:
        residual, _, line2 = _epipolar_terms(model, p1, p2)
        denom = line2[0] ** 2 + line2[1] ** 2
        if denom <= 0.0:
            return float("inf")
        return float(residual * residual / denom)


@dataclass(frozen=True)
class SymmetricEpipolarDistanceError:
    """Sum of the squared point-to-epipolar-line distances in both images."""

    def error(self, model: Mat3x3, p1: FloatArray, p2: FloatArray) -> float:
        residual, line1, line2 = _epipolar_terms(model, p1, p2)
        d1 = line1[0] ** 2 + line1[1] ** 2
        d2 = line2[0] ** 2 + line2[1] ** 2
        if d1 <= 0.0 or d2 <= 0.0:
            return float("inf")
        return float(residual * residual * (1.0 / d1 + 1.0 / d2))
