"""
Synthetic two-view data shared by the tests.

Scenes are built in the first camera frame: camera 1 is [I | 0], camera 2 is
[R | t] with a unit baseline, points are placed in front of both cameras.
Projections are calibrated (K = I), which is what the five-point solver expects.
"""
from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np
import pytest


def skew(v: np.ndarray) -> np.ndarray:
    return np.array([[0.0, -v[2], v[1]],
                     [v[2], 0.0, -v[0]],
                     [-v[1], v[0], 0.0]])


def project(X: np.ndarray) -> np.ndarray:
    return X[:2] / X[2]


def frobenius_normalized(E: np.ndarray) -> np.ndarray:
    return E / np.linalg.norm(E)


def distance_up_to_sign(A: np.ndarray, B: np.ndarray) -> float:
    A = frobenius_normalized(A)
    B = frobenius_normalized(B)
    return float(min(np.linalg.norm(A - B), np.linalg.norm(A + B)))


@dataclass(frozen=True)
class TwoViewScene:
    R: np.ndarray
    t: np.ndarray
    X: np.ndarray     # (3,N) points in camera 1 frame
    x1: np.ndarray    # (2,N) calibrated projections in camera 1
    x2: np.ndarray    # (2,N) calibrated projections in camera 2

    @property
    def E(self) -> np.ndarray:
        return skew(self.t) @ self.R


def make_scene(
        n: int,
        *,
        seed: int = 0,
        rvec=(0.10, -0.20, 0.05),
        t=(1.0, 0.1, 0.2),
        depth: float = 4.0,
) -> TwoViewScene:
    """n points on a unit sphere centered `depth` units in front of camera 1."""
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    t = np.asarray(t, dtype=np.float64)
    t = t / np.linalg.norm(t)

    rng = np.random.default_rng(seed)
    X = rng.normal(size=(3, n))
    X /= np.linalg.norm(X, axis=0)
    X[2] += depth

    X2 = R @ X + t[:, None]
    return TwoViewScene(R=R, t=t, X=X, x1=project(X), x2=project(X2))


def make_collinear_scene(n: int = 5) -> TwoViewScene:
    """n points on a 3D line: their projections are collinear in both views."""
    scene = make_scene(2, seed=3)
    a, b = scene.X[:, 0], scene.X[:, 1]
    s = np.linspace(0.0, 1.0, n)
    X = a[:, None] + (b - a)[:, None] * s[None, :]
    X2 = scene.R @ X + scene.t[:, None]
    return TwoViewScene(R=scene.R, t=scene.t, X=X, x1=project(X), x2=project(X2))


@pytest.fixture
def scene5() -> TwoViewScene:
    return make_scene(5)


@pytest.fixture
def affine2d_pair():
    """Exact 2D affine map on pixel-scale coordinates."""
    M = np.array([[1.2, -0.3, 120.0],
                  [0.25, 0.9, -45.0],
                  [0.0, 0.0, 1.0]])
    rng = np.random.default_rng(7)
    x1 = rng.uniform(0.0, 2000.0, size=(2, 20))
    x2 = M[:2, :2] @ x1 + M[:2, 2:]
    return M, x1, x2


@pytest.fixture
def affine3d_pair():
    M = np.array([[2.0, 0.0, 0.0, 1.0],
                  [0.0, 2.0, 0.0, 1.0],
                  [0.0, 0.0, 2.0, 1.0],
                  [0.0, 0.0, 0.0, 1.0]])
    x1 = np.array([[0.0, 1.0, 0.0, 0.0],
                   [0.0, 0.0, 1.0, 0.0],
                   [0.0, 0.0, 0.0, 1.0]])
    x2 = M[:3, :3] @ x1 + M[:3, 3:]
    return M, x1, x2
