"""
Five-point relative pose: essential matrices from 5 calibrated correspondences.

Pipeline (Stewenius, Engels, Nister 2006; Nister 2004):

1) Nullspace extraction
   Every correspondence gives one linear equation x2^T E x1 = 0 in the 9
   entries of E. Five equations leave a 4-dimensional right nullspace
   spanned by X, Y, Z, W, so

       E = x*X + y*Y + z*Z + W        (w fixed to 1, E is up to scale)

2) Constraint expansion
   A valid essential matrix satisfies
       det(E) = 0
       2 E E^T E - trace(E E^T) E = 0          (9 equations)
   These are 10 cubic polynomials in (x, y, z), stored as coefficient rows
   over the 20 monomials of degree <= 3 (see Monomial).

3) Gauss-Jordan elimination
   The leading 10x10 block (the cubic monomials) is eliminated, which
   expresses every cubic monomial through the 10 remaining ones.

4) Root finding
   The eliminated system is the action matrix of "multiplication by x" on
   the basis [xx xy yy xz yz zz x y z 1]. Its 10 eigenvalues are the
   x-roots of the degree-10 univariate problem. Eigenvectors carry (x, y, z, 1)
   in their last four entries, which gives the back substitution for free.

5) Every real solution yields one candidate E (unit Frobenius norm).
"""
from __future__ import annotations

import logging
from enum import IntEnum
from typing import List, Optional

import numpy as np

from .exceptions import PointSetMismatchError, SampleSizeError
from .types import FloatArray, Mat3x3, Points2D, as_homogeneous

logger = logging.getLogger(__name__)

MINIMUM_SAMPLES = 5
MAX_MODELS = 10

# 5th singular value of the epipolar system, relative to the largest, below
# which the 5 correspondences do not pin down a 4D nullspace.
_RANK_TOL = 1e-9
# Condition number above which the elimination block is treated as singular.
_COND_LIMIT = 1.0 / np.finfo(np.float64).eps


class Monomial(IntEnum):
    """
    Coefficient slots of a polynomial in (x, y, z) of degree <= 3.

    Order matters: it is the one the elimination and the action matrix rely
    on. Stewenius' paper lists [xxx xxy xxz xyy ...] in its equation (9),
    but that is not the order used by the rest of the paper or its code.
    """
    XXX = 0
    XXY = 1
    XYY = 2
    YYY = 3
    XXZ = 4
    XYZ = 5
    YYZ = 6
    XZZ = 7
    YZZ = 8
    ZZZ = 9
    XX = 10
    XY = 11
    YY = 12
    XZ = 13
    YZ = 14
    ZZ = 15
    X = 16
    Y = 17
    Z = 18
    ONE = 19


NUM_MONOMIALS = len(Monomial)

# (x, y, z) exponents of every monomial, indexed like Monomial.
_EXPONENTS = np.array(
    [[name.count("X"), name.count("Y"), name.count("Z")] for name in Monomial.__members__],
    dtype=np.intp,
)
_DEGREE = _EXPONENTS.sum(axis=1)
_INDEX_OF = {tuple(e): i for i, e in enumerate(_EXPONENTS.tolist())}


def _product_table(a_degree: int, b_degree: int):
    """Index triples (i, j, k) such that monomial_i * monomial_j = monomial_k."""
    ii, jj, kk = [], [], []
    for i in np.flatnonzero(_DEGREE <= a_degree):
        for j in np.flatnonzero(_DEGREE <= b_degree):
            ii.append(i)
            jj.append(j)
            kk.append(_INDEX_OF[tuple((_EXPONENTS[i] + _EXPONENTS[j]).tolist())])
    return np.array(ii), np.array(jj), np.array(kk)


_DEG1_DEG1 = _product_table(1, 1)
_DEG2_DEG1 = _product_table(2, 1)


def _multiply(a: FloatArray, b: FloatArray, table) -> FloatArray:
    ii, jj, kk = table
    res = np.zeros(NUM_MONOMIALS, dtype=np.float64)
    np.add.at(res, kk, a[ii] * b[jj])
    return res


def multiply_deg1(a: FloatArray, b: FloatArray) -> FloatArray:
    """Product of two polynomials of degree 1 (a degree 2 polynomial)."""
    return _multiply(a, b, _DEG1_DEG1)


def multiply_deg2_deg1(a: FloatArray, b: FloatArray) -> FloatArray:
    """Product of a degree 2 polynomial `a` and a degree 1 polynomial `b`."""
    return _multiply(a, b, _DEG2_DEG1)


def _check_input(x1: Points2D, x2: Points2D):
    x1 = np.asarray(x1, dtype=np.float64)
    x2 = np.asarray(x2, dtype=np.float64)
    if x1.shape != x2.shape:
        raise PointSetMismatchError(f"x1 and x2 must have same shape, got {x1.shape} vs {x2.shape}")
    if x1.ndim != 2 or x1.shape[0] != 2:
        raise PointSetMismatchError(f"Expected points shape (2, N), got {x1.shape}")
    if x1.shape[1] < MINIMUM_SAMPLES:
        raise SampleSizeError(x1.shape[1], MINIMUM_SAMPLES)
    return x1, x2


def encode_epipolar_equation(x1: Points2D, x2: Points2D) -> FloatArray:
    """
    One row per correspondence such that row @ E.ravel() = x2h^T @ E @ x1h
    (E flattened row-major):

        row = [x2*x1, x2*y1, x2, y2*x1, y2*y1, y2, x1, y1, 1]
    """
    x1h = as_homogeneous(x1)
    x2h = as_homogeneous(x2)
    return np.einsum("in,jn->nij", x2h, x1h).reshape(-1, 9)


def _nullspace(x1: Points2D, x2: Points2D):
    A = encode_epipolar_equation(x1, x2)
    # Right singular vectors of the smallest singular values span the nullspace
    _, s, vt = np.linalg.svd(A, full_matrices=True)
    return vt[-4:].T, s


def five_points_nullspace_basis(x1: Points2D, x2: Points2D) -> FloatArray:
    """
    (9,4) basis of the essential matrix family. Columns are X, Y, Z, W
    flattened row-major. With more than 5 points, the 4 right singular
    vectors of smallest singular value are returned.
    """
    x1, x2 = _check_input(x1, x2)
    basis, _ = _nullspace(x1, x2)
    return basis


def five_points_polynomial_constraints(E_basis: FloatArray) -> FloatArray:
    """
    Build the (10,20) polynomial constraint matrix.

    Row 0 is det(E) = 0, rows 1..9 are the entries of

        E E^T E - 0.5 * trace(E E^T) E = 0

    (the same equations as 2 E E^T E - trace(E E^T) E = 0, up to a factor 2).
    """
    if E_basis.shape != (9, 4):
        raise ValueError(f"Expected E_basis shape (9, 4), got {E_basis.shape}")

    # Polynomial form of every entry of E: x*X_ij + y*Y_ij + z*Z_ij + W_ij
    E = np.zeros((3, 3, NUM_MONOMIALS), dtype=np.float64)
    for slot, coef in enumerate((Monomial.X, Monomial.Y, Monomial.Z, Monomial.ONE)):
        E[:, :, coef] = E_basis[:, slot].reshape(3, 3)

    M = np.zeros((10, NUM_MONOMIALS), dtype=np.float64)

    # Determinant, expanded along the last row.
    M[0] = (multiply_deg2_deg1(multiply_deg1(E[0, 1], E[1, 2]) - multiply_deg1(E[0, 2], E[1, 1]), E[2, 0])
            + multiply_deg2_deg1(multiply_deg1(E[0, 2], E[1, 0]) - multiply_deg1(E[0, 0], E[1, 2]), E[2, 1])
            + multiply_deg2_deg1(multiply_deg1(E[0, 0], E[1, 1]) - multiply_deg1(E[0, 1], E[1, 0]), E[2, 2]))

    # E E^T is symmetric, only the upper triangle is computed.
    EET = np.zeros((3, 3, NUM_MONOMIALS), dtype=np.float64)
    for i in range(3):
        for j in range(i, 3):
            EET[i, j] = sum(multiply_deg1(E[i, k], E[j, k]) for k in range(3))
            EET[j, i] = EET[i, j]

    # L = E E^T - 0.5 * trace(E E^T) I
    L = EET
    half_trace = 0.5 * (EET[0, 0] + EET[1, 1] + EET[2, 2])
    for i in range(3):
        L[i, i] = L[i, i] - half_trace

    row = 1
    for i in range(3):
        for j in range(3):
            M[row] = sum(multiply_deg2_deg1(L[i, k], E[k, j]) for k in range(3))
            row += 1
    return M


def _action_matrix(constraints: FloatArray) -> Optional[FloatArray]:
    """
    Eliminate the cubic monomials and build the 10x10 action matrix of
    multiplication by x on [xx xy yy xz yz zz x y z 1].
    """
    # Split the 10x20 system into cubic and lower-degree monomials:
    #   C @ [xxx ... zzz]^T + D @ [xx ... 1]^T = 0
    C = constraints[:, :10]

    # A singular C means the cubic monomials cannot be eliminated.
    if not np.all(np.isfinite(C)) or np.linalg.cond(C) > _COND_LIMIT:
        return None
    # Gauss-Jordan step: B = C^-1 @ D, so every cubic monomial equals
    #   [xxx ... zzz]^T = -B @ [xx xy yy xz yz zz x y z 1]^T
    try:
        B = np.linalg.solve(C, constraints[:, 10:])
    except np.linalg.LinAlgError:
        return None

    # x * [xx xy yy xz yz zz] = [xxx xxy xyy xxz xyz xzz] -> eliminated rows 0 1 2 4 5 7
    # x * [x y z 1]           = [xx xy xz x]            -> basis slots 0 1 3 6
    #
    # Row k of At expresses x * basis[k] in the basis, so At @ v = x * v for
    # v = basis evaluated at a solution.
    At = np.zeros((10, 10), dtype=np.float64)

    # Rows 0-5: the products are cubic, read them off the eliminated system
    At[0:6] = -B[[Monomial.XXX, Monomial.XXY, Monomial.XYY, Monomial.XXZ, Monomial.XYZ, Monomial.XZZ]]
    # Rows 6-9: the products stay in the basis, a single 1 picks them
    At[6, 0] = 1.0      # x * x = xx
    At[7, 1] = 1.0      # x * y = xy
    At[8, 3] = 1.0      # x * z = xz
    At[9, 6] = 1.0      # x * 1 = x
    return At


def five_points_relative_pose(
        x1: Points2D,
        x2: Points2D,
        models: Optional[List[Mat3x3]] = None,
) -> List[Mat3x3]:
    """
    Candidate essential matrices from 5 correspondences of calibrated points.

    x1, x2: (2,N) normalized image points (K^-1 applied), N >= 5
    models: output list, new candidates are appended, existing entries are kept

    Returns:
      the `models` list (a new list if none was given). Zero to ten matrices
      were appended, each with unit Frobenius norm and x2^T E x1 ≈ 0.
    """
    if models is None:
        models = []
    x1, x2 = _check_input(x1, x2)

    # Step 1: nullspace extraction
    E_basis, s = _nullspace(x1, x2)
    if s[MINIMUM_SAMPLES - 1] <= _RANK_TOL * s[0]:
        logger.debug("five point: degenerate sample, epipolar system rank < 5")
        return models

    # Step 2: constraint expansion
    constraints = five_points_polynomial_constraints(E_basis)

    # Step 3: Gauss-Jordan elimination -> action matrix
    At = _action_matrix(constraints)
    if At is None:
        logger.debug("five point: singular elimination block")
        return models

    # Step 4: roots from the eigen-decomposition of the action matrix
    eigenvalues, V = np.linalg.eig(At)

    # Step 5: back substitution (x, y, z, 1) = V[6:10] / V[9]
    found = 0
    for s_idx in range(10):
        if np.imag(eigenvalues[s_idx]) != 0:
            continue
        v = np.real(V[6:10, s_idx])
        if v[3] == 0:
            continue
        e_vec = E_basis @ (v / v[3])
        norm = np.linalg.norm(e_vec)
        if not np.isfinite(norm) or norm == 0:
            continue
        models.append((e_vec / norm).reshape(3, 3))
        found += 1

    logger.debug("five point: %d real solution(s)", found)
    return models
