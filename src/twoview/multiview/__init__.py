"""
Two-view multiview geometry package

This module provides:
- Point conditioning (normalization transforms and unnormalizers)
- Minimal solvers: 2D/3D affine, five-point essential matrix
- Per-correspondence error functors
- A generic Kernel binding point sets, a solver and an error functor,
  ready to be driven by an outer consensus loop
"""

from .types import (
    FloatArray, IndexArray, Points2D, Points3D, PointsHomog, Mat3x3, Mat4x4,
    Solver, ErrorFunctor, Unnormalizer,
    as_homogeneous, from_homogeneous, is_valid_square,
)

from .exceptions import (
    TwoViewError, ContractViolationError, PointSetMismatchError,
    SampleSizeError, SampleIndexError, DegenerateConditioningError,
)

from .conditioning import (
    isotropic_preconditioner_from_points, preconditioner_from_points,
    apply_transformation_to_points, normalize_points,
    UnnormalizerInverse, UnnormalizerTranspose,
)

from .affine import (
    DEFAULT_AFFINE_PRECISION,
    affine2d_from_correspondences_linear, affine3d_from_correspondences_linear,
    apply_affine, affine_squared_residuals,
)

from .affine_solver import Affine2DSolver, Affine3DSolver, AffineSquaredError

from .five_point import (
    Monomial, encode_epipolar_equation, five_points_nullspace_basis,
    five_points_polynomial_constraints, five_points_relative_pose,
)

from .essential_solver import FivePointSolver

from .epipolar_errors import (
    AlgebraicEpipolarError, SampsonError, EpipolarDistanceError, SymmetricEpipolarDistanceError,
)

from .kernel import (
    Kernel, NormalizedSolver, extract_columns,
    affine2d_kernel, affine3d_kernel, essential_kernel,
)

__all__ = [
    "FloatArray", "IndexArray", "Points2D", "Points3D", "PointsHomog", "Mat3x3", "Mat4x4",
    "Solver", "ErrorFunctor", "Unnormalizer",
    "as_homogeneous", "from_homogeneous", "is_valid_square",
    "TwoViewError", "ContractViolationError", "PointSetMismatchError",
    "SampleSizeError", "SampleIndexError", "DegenerateConditioningError",
    "isotropic_preconditioner_from_points", "preconditioner_from_points",
    "apply_transformation_to_points", "normalize_points",
    "UnnormalizerInverse", "UnnormalizerTranspose",
    "DEFAULT_AFFINE_PRECISION",
    "affine2d_from_correspondences_linear", "affine3d_from_correspondences_linear",
    "apply_affine", "affine_squared_residuals",
    "Affine2DSolver", "Affine3DSolver", "AffineSquaredError",
    "Monomial", "encode_epipolar_equation", "five_points_nullspace_basis",
    "five_points_polynomial_constraints", "five_points_relative_pose",
    "FivePointSolver",
    "AlgebraicEpipolarError", "SampsonError", "EpipolarDistanceError", "SymmetricEpipolarDistanceError",
    "Kernel", "NormalizedSolver", "extract_columns",
    "affine2d_kernel", "affine3d_kernel", "essential_kernel",
]
