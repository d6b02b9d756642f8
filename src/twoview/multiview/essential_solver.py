"""
Adapter: makes the five-point solver conform to the Solver protocol.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from . import five_point
from .types import Mat3x3, Points2D


@dataclass(frozen=True)
class FivePointSolver:
    """
    Essential matrices from >= 5 calibrated correspondences.

    Points must already be normalized by the camera intrinsics.
    """

    minimum_samples = five_point.MINIMUM_SAMPLES
    max_models = five_point.MAX_MODELS

    def solve(self, x1: Points2D, x2: Points2D, models: List[Mat3x3]) -> None:
        five_point.five_points_relative_pose(x1, x2, models)
