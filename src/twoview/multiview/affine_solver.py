"""
Adapters: make the affine functions conform to the Solver / ErrorFunctor protocols.

This keeps kernel.py generic and reusable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .affine import (
    DEFAULT_AFFINE_PRECISION,
    affine2d_from_correspondences_linear,
    affine3d_from_correspondences_linear,
    affine_squared_residuals,
)
from .types import FloatArray, Mat3x3, Mat4x4, Points2D, Points3D


@dataclass(frozen=True)
class Affine2DSolver:
    expected_precision: float = DEFAULT_AFFINE_PRECISION

    minimum_samples = 3
    max_models = 1

    def solve(self, x1: Points2D, x2: Points2D, models: List[Mat3x3]) -> None:
        M = affine2d_from_correspondences_linear(x1, x2, self.expected_precision)
        if M is not None:
            models.append(M)


@dataclass(frozen=True)
class Affine3DSolver:
    expected_precision: float = DEFAULT_AFFINE_PRECISION

    minimum_samples = 4
    max_models = 1

    def solve(self, x1: Points3D, x2: Points3D, models: List[Mat4x4]) -> None:
        M = affine3d_from_correspondences_linear(x1, x2, self.expected_precision)
        if M is not None:
            models.append(M)


@dataclass(frozen=True)
class AffineSquaredError:
    """Squared transfer distance ||M @ p1 - p2||^2, for 2D and 3D affine models."""

    def error(self, model: FloatArray, p1: FloatArray, p2: FloatArray) -> float:
        return float(affine_squared_residuals(model, p1, p2))
