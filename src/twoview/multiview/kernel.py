"""
Two-view estimation kernel.

A kernel is the part of a robust fitting problem that a consensus loop
(RANSAC, MSAC, ...) needs, and nothing more:

  1. the model type (3x3 affine or essential matrix, 4x4 3D affine)
  2. the minimum number of samples needed to fit
  3. the maximum number of models one fit can produce
  4. a way to turn a sample (column indices) into candidate models
  5. a way to score one correspondence against a model

The loop only sees "there are N samples": it fits subsets of them through
the kernel and scores them, but never touches the points themselves.

Kernel.fit() never clears the output list, it appends to it. A loop can
collect the models of several fits into one buffer.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, List, Sequence, TypeVar

import numpy as np

from .affine_solver import Affine2DSolver, Affine3DSolver, AffineSquaredError
from .affine import DEFAULT_AFFINE_PRECISION
from .conditioning import UnnormalizerInverse, normalize_points
from .epipolar_errors import SampsonError
from .essential_solver import FivePointSolver
from .exceptions import (
    DegenerateConditioningError,
    PointSetMismatchError,
    SampleIndexError,
    SampleSizeError,
)
from .types import ErrorFunctor, FloatArray, IndexArray, Solver, Unnormalizer

logger = logging.getLogger(__name__)

M = TypeVar("M")


def extract_columns(points: FloatArray, samples: Sequence[int]) -> FloatArray:
    """Columns of `points` at `samples`, in sample order (a copy)."""
    return points[:, np.asarray(samples, dtype=np.intp)]


def _check_point_sets(x1: FloatArray, x2: FloatArray) -> None:
    if x1.shape != x2.shape:
        raise PointSetMismatchError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
    if x1.ndim != 2:
        raise PointSetMismatchError(f"Expected points shape (d, N), got {x1.shape}")


class Kernel(Generic[M]):
    """
    Binds a pair of point sets to a Solver and an ErrorFunctor.

    The kernel keeps references to x1 and x2 (no copy) and never writes to
    them; they must stay alive and unchanged while the kernel is in use.
    """

    def __init__(self, x1: FloatArray, x2: FloatArray, solver: Solver[M], error: ErrorFunctor[M]):
        x1 = np.asarray(x1)
        x2 = np.asarray(x2)
        _check_point_sets(x1, x2)
        self._x1 = x1
        self._x2 = x2
        self.solver = solver
        self.error_functor = error

    @property
    def minimum_samples(self) -> int:
        """The minimal number of points required for the model estimation."""
        return self.solver.minimum_samples

    @property
    def max_models(self) -> int:
        """The number of models the minimal solver could return."""
        return self.solver.max_models

    def num_samples(self) -> int:
        """Number of putative correspondences."""
        return self._x1.shape[1]

    def _check_samples(self, samples: Sequence[int]) -> IndexArray:
        idx = np.asarray(samples)
        if idx.ndim != 1:
            raise SampleIndexError(f"Sample must be a flat sequence of indices, got shape {idx.shape}")
        if idx.size < self.minimum_samples:
            raise SampleSizeError(idx.size, self.minimum_samples)
        if not np.issubdtype(idx.dtype, np.integer):
            raise SampleIndexError(f"Sample indices must be integers, got dtype {idx.dtype}")
        n = self.num_samples()
        if np.any(idx < 0) or np.any(idx >= n):
            raise SampleIndexError(f"Sample indices must lie in [0, {n}), got {idx.tolist()}")
        return idx.astype(np.intp)

    def fit(self, samples: Sequence[int], models: List[M]) -> None:
        """Extract the sampled columns and append the solver's models to `models`."""
        idx = self._check_samples(samples)
        x1 = extract_columns(self._x1, idx)
        x2 = extract_columns(self._x2, idx)
        self.solver.solve(x1, x2, models)

    def error(self, index: int, model: M) -> float:
        """Error of the index-th correspondence under `model`."""
        n = self.num_samples()
        # No negative indices: numpy would silently wrap them to the end.
        if not 0 <= index < n:
            raise SampleIndexError(f"Correspondence index must lie in [0, {n}), got {index}")
        return self.error_functor.error(model, self._x1[:, index], self._x2[:, index])

    def solve(self, x1: FloatArray, x2: FloatArray, models: List[M]) -> None:
        """Run the bound solver on explicit point sets."""
        self.solver.solve(x1, x2, models)


@dataclass(frozen=True)
class NormalizedSolver(Generic[M]):
    """
    Wraps a solver with point conditioning.

    Both point sets are normalized, the wrapped solver runs in normalized
    coordinates, and every model it returns is mapped back with
    `unnormalizer`. Minimum samples and max models are the wrapped solver's.

    The unnormalizer has to match the model algebra: UnnormalizerInverse for
    point transforms (affine), UnnormalizerTranspose for epipolar matrices.

    A point set with zero spread cannot be normalized: the sample is
    unusable, no model is appended.
    """
    solver: Solver[M]
    unnormalizer: Unnormalizer[M]
    isotropic: bool = True

    @property
    def minimum_samples(self) -> int:
        return self.solver.minimum_samples

    @property
    def max_models(self) -> int:
        return self.solver.max_models

    def solve(self, x1: FloatArray, x2: FloatArray, models: List[M]) -> None:
        x1 = np.asarray(x1, dtype=np.float64)
        x2 = np.asarray(x2, dtype=np.float64)
        _check_point_sets(x1, x2)
        if x1.shape[1] < self.minimum_samples:
            raise SampleSizeError(x1.shape[1], self.minimum_samples)

        try:
            x1_normalized, T1 = normalize_points(x1, isotropic=self.isotropic)
            x2_normalized, T2 = normalize_points(x2, isotropic=self.isotropic)
        except DegenerateConditioningError as exc:
            logger.debug("normalized solver: sample rejected, %s", exc)
            return

        # Solve into a scratch list so models already in `models` are left alone.
        normalized_models: List[M] = []
        self.solver.solve(x1_normalized, x2_normalized, normalized_models)
        for model in normalized_models:
            models.append(self.unnormalizer.unnormalize(T1, T2, model))


# ---------- Ready-made kernels ----------
def affine2d_kernel(
        x1: FloatArray,
        x2: FloatArray,
        *,
        expected_precision: float = DEFAULT_AFFINE_PRECISION,
        normalized: bool = False,
) -> Kernel[FloatArray]:
    solver = Affine2DSolver(expected_precision)
    if normalized:
        solver = NormalizedSolver(solver, UnnormalizerInverse())
    return Kernel(x1, x2, solver, AffineSquaredError())


def affine3d_kernel(
        x1: FloatArray,
        x2: FloatArray,
        *,
        expected_precision: float = DEFAULT_AFFINE_PRECISION,
        normalized: bool = False,
) -> Kernel[FloatArray]:
    solver = Affine3DSolver(expected_precision)
    if normalized:
        solver = NormalizedSolver(solver, UnnormalizerInverse())
    return Kernel(x1, x2, solver, AffineSquaredError())


def essential_kernel(
        x1: FloatArray,
        x2: FloatArray,
        *,
        error: ErrorFunctor[FloatArray] = SampsonError(),
) -> Kernel[FloatArray]:
    """Five-point kernel on calibrated (K^-1 normalized) points."""
    return Kernel(x1, x2, FivePointSolver(), error)
