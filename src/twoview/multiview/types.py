"""
Shared typed primitives for the two-view estimation core.

Defines:
- Typed NumPy aliases for geometry
    - Point sets are (d,N) float arrays, one point per column
    - Models are square homogeneous matrices (3x3 or 4x4)
- Protocols a solver, an error functor and an unnormalizer must follow
  to be composed by the Kernel
- Small homogeneous-coordinate helpers
"""

from __future__ import annotations

from typing import List, Protocol, TypeVar, TypeAlias

import numpy as np
import numpy.typing as npt

# ---------- Numpy typing aliases ----------
# float64 everywhere: all solvers run in double precision.

FloatArray: TypeAlias = npt.NDArray[np.float64]
IndexArray: TypeAlias = npt.NDArray[np.intp]

# Point sets are stored column-wise, the column index is the correspondence id.
Points2D: TypeAlias = FloatArray      # shape: (2, N)
Points3D: TypeAlias = FloatArray      # shape: (3, N)
PointsHomog: TypeAlias = FloatArray   # shape: (d+1, N)

Mat3x3: TypeAlias = FloatArray        # shape: (3, 3)
Mat4x4: TypeAlias = FloatArray        # shape: (4, 4)

# ---------- Generic model typing ----------
M = TypeVar("M")


class Solver(Protocol[M]):
    """
    Interface a minimal solver must implement to be bound into a Kernel.

    solve() never clears `models`, it only appends the candidates it found.
    Appending nothing is the normal "no solution" outcome.
    """

    @property
    def minimum_samples(self) -> int:
        ...

    @property
    def max_models(self) -> int:
        ...

    def solve(self, x1: FloatArray, x2: FloatArray, models: List[M]) -> None:
        ...


class ErrorFunctor(Protocol[M]):
    """Scores one correspondence (p1, p2) against a model. Smaller = better."""

    def error(self, model: M, p1: FloatArray, p2: FloatArray) -> float:
        ...


class Unnormalizer(Protocol[M]):
    """Maps a model estimated in normalized coordinates back to raw coordinates."""

    def unnormalize(self, T1: FloatArray, T2: FloatArray, model: M) -> M:
        ...


# ---------- Helper Functions ----------
def as_homogeneous(points: FloatArray) -> PointsHomog:
    """
    Convert (d,N) points -> (d+1,N) homogeneous points by appending a row of ones.
    A single point of shape (d,) becomes (d+1,).
    """
    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1:
        return np.append(points, 1.0)
    if points.ndim != 2:
        raise ValueError(f"Expected points shape (d, N) but got {points.shape}")

    ones = np.ones((1, points.shape[1]), dtype=np.float64)
    return np.vstack([points, ones])


def from_homogeneous(points: PointsHomog) -> FloatArray:
    """Divide by the last coordinate and drop it. Works on (d+1,N) or (d+1,)."""
    points = np.asarray(points, dtype=np.float64)
    return points[:-1] / points[-1]


def is_valid_square(mat: FloatArray, size: int) -> bool:
    """
    Verify a homogeneous matrix of the given size.
    Used for rejecting failed fits.
    """
    return isinstance(mat, np.ndarray) and mat.shape == (size, size) and bool(np.isfinite(mat).all())

