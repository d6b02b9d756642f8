import numpy as np
import pytest

from conftest import distance_up_to_sign, make_scene
from twoview.multiview import (
    Affine2DSolver,
    Affine3DSolver,
    AffineSquaredError,
    ContractViolationError,
    FivePointSolver,
    Kernel,
    NormalizedSolver,
    PointSetMismatchError,
    SampleIndexError,
    SampleSizeError,
    SampsonError,
    UnnormalizerInverse,
    UnnormalizerTranspose,
    affine2d_kernel,
    affine3d_kernel,
    essential_kernel,
    extract_columns,
)


def test_kernel_exposes_solver_bounds(affine2d_pair, scene5):
    _, x1, x2 = affine2d_pair
    kernel = affine2d_kernel(x1, x2)
    assert kernel.num_samples() == 20
    assert kernel.minimum_samples == 3
    assert kernel.max_models == 1

    kernel = essential_kernel(scene5.x1, scene5.x2)
    assert kernel.num_samples() == 5
    assert kernel.minimum_samples == 5
    assert kernel.max_models == 10


def test_kernel_keeps_references_and_does_not_mutate(affine2d_pair):
    _, x1, x2 = affine2d_pair
    before = x1.copy()
    kernel = affine2d_kernel(x1, x2)
    kernel.fit([4, 1, 9], [])
    assert kernel._x1 is x1
    np.testing.assert_array_equal(x1, before)


def test_extract_columns_preserves_sample_order():
    points = np.arange(12.0).reshape(2, 6)
    np.testing.assert_array_equal(extract_columns(points, [4, 0, 2]), [[4.0, 0.0, 2.0], [10.0, 6.0, 8.0]])


def test_fit_is_append_only(affine2d_pair):
    M, x1, x2 = affine2d_pair
    kernel = affine2d_kernel(x1, x2)
    seed = [np.eye(3), np.full((3, 3), -1.0)]
    models = list(seed)

    kernel.fit([0, 5, 10], models)
    kernel.fit([1, 2, 3, 4], models)

    assert len(models) == 4
    assert all(a is b for a, b in zip(models, seed))
    for est in models[2:]:
        np.testing.assert_allclose(est, M, rtol=1e-9, atol=1e-8)


def test_five_point_fit_is_append_only():
    scene = make_scene(12, seed=5)
    kernel = essential_kernel(scene.x1, scene.x2)
    models = [np.eye(3)]
    kernel.fit([0, 3, 5, 7, 11], models)
    assert models[0] is not None and np.array_equal(models[0], np.eye(3))
    assert 2 <= len(models) <= 11
    assert min(distance_up_to_sign(E, scene.E) for E in models[1:]) < 1e-6


def test_error_uses_full_point_set():
    scene = make_scene(12, seed=6)
    kernel = essential_kernel(scene.x1, scene.x2)
    models = []
    kernel.fit([0, 1, 2, 3, 4], models)
    best = min(models, key=lambda E: distance_up_to_sign(E, scene.E))
    # points outside the sample are explained by the right model
    for i in range(kernel.num_samples()):
        assert kernel.error(i, best) < 1e-10


def test_affine3d_kernel(affine3d_pair):
    M, x1, x2 = affine3d_pair
    kernel = affine3d_kernel(x1, x2)
    models = []
    kernel.fit([0, 1, 2, 3], models)
    assert len(models) == 1
    np.testing.assert_allclose(models[0], M, atol=1e-9)
    assert kernel.error(2, models[0]) == pytest.approx(0.0, abs=1e-18)


def test_short_sample_is_a_contract_violation(affine2d_pair):
    _, x1, x2 = affine2d_pair
    kernel = affine2d_kernel(x1, x2)
    models = []
    with pytest.raises(SampleSizeError):
        kernel.fit([0, 1], models)
    with pytest.raises(SampleSizeError):
        kernel.fit([], models)
    assert models == []


def test_bad_indices_are_rejected(affine2d_pair):
    _, x1, x2 = affine2d_pair
    kernel = affine2d_kernel(x1, x2)
    with pytest.raises(SampleIndexError):
        kernel.fit([0, 1, 20], [])
    with pytest.raises(IndexError):
        kernel.fit([-1, 1, 2], [])
    with pytest.raises(SampleIndexError):
        kernel.fit([0.0, 1.0, 2.0], [])


def test_error_rejects_out_of_range_index(affine2d_pair):
    M, x1, x2 = affine2d_pair
    x2 = x2.copy()
    x2[:, -1] += 100.0
    kernel = affine2d_kernel(x1, x2)
    n = kernel.num_samples()
    # negative indices must not wrap around to the last correspondence
    with pytest.raises(SampleIndexError):
        kernel.error(-1, M)
    with pytest.raises(SampleIndexError):
        kernel.error(n, M)
    assert kernel.error(n - 1, M) == pytest.approx(20000.0)
    assert kernel.error(0, M) == pytest.approx(0.0, abs=1e-12)


def test_mismatched_point_sets_are_rejected():
    with pytest.raises(PointSetMismatchError):
        Kernel(np.zeros((2, 5)), np.zeros((2, 6)), Affine2DSolver(), AffineSquaredError())
    assert issubclass(PointSetMismatchError, ContractViolationError)


def test_degenerate_sample_is_not_an_exception():
    x1 = np.array([[0.0, 1.0, 2.0, 0.0], [0.0, 1.0, 2.0, 1.0]])
    kernel = affine2d_kernel(x1, x1 + 1.0)
    models = []
    kernel.fit([0, 1, 2], models)
    assert models == []


def test_solve_runs_bound_solver(affine3d_pair):
    M, x1, x2 = affine3d_pair
    kernel = Kernel(x1, x2, Affine3DSolver(), AffineSquaredError())
    models = []
    kernel.solve(x1, x2, models)
    np.testing.assert_allclose(models[0], M, atol=1e-9)


# ---------- Normalized solver ----------
def test_normalized_solver_requires_an_unnormalizer():
    with pytest.raises(TypeError):
        NormalizedSolver(Affine2DSolver())


def test_normalized_solver_inherits_bounds():
    solver = NormalizedSolver(Affine2DSolver(), UnnormalizerInverse())
    assert (solver.minimum_samples, solver.max_models) == (3, 1)
    solver = NormalizedSolver(FivePointSolver(), UnnormalizerTranspose())
    assert (solver.minimum_samples, solver.max_models) == (5, 10)


@pytest.mark.parametrize("isotropic", [True, False])
def test_normalized_and_raw_affine2d_agree(affine2d_pair, isotropic):
    M, x1, x2 = affine2d_pair
    raw, normalized = [], []
    Affine2DSolver().solve(x1, x2, raw)
    NormalizedSolver(Affine2DSolver(), UnnormalizerInverse(), isotropic=isotropic).solve(x1, x2, normalized)
    assert len(raw) == len(normalized) == 1
    np.testing.assert_allclose(normalized[0], raw[0], rtol=1e-8, atol=1e-8)
    np.testing.assert_allclose(normalized[0], M, rtol=1e-8, atol=1e-8)


def test_normalized_and_raw_affine3d_agree():
    rng = np.random.default_rng(9)
    M = np.eye(4)
    M[:3, :] = rng.normal(size=(3, 4)) * [1.0, 1.0, 1.0, 500.0]
    x1 = rng.uniform(0.0, 3000.0, size=(3, 10))
    x2 = M[:3, :3] @ x1 + M[:3, 3:]
    kernel = affine3d_kernel(x1, x2, normalized=True)
    raw, normalized = [], []
    kernel.fit(range(10), normalized)
    Affine3DSolver().solve(x1, x2, raw)
    np.testing.assert_allclose(normalized[0], raw[0], rtol=1e-8, atol=1e-7)


def test_normalized_solver_appends_only(affine2d_pair):
    _, x1, x2 = affine2d_pair
    sentinel = np.zeros((3, 3))
    models = [sentinel]
    affine2d_kernel(x1, x2, normalized=True).fit([0, 1, 2], models)
    assert len(models) == 2 and models[0] is sentinel
    np.testing.assert_array_equal(sentinel, np.zeros((3, 3)))


def test_normalized_solver_coincident_points_give_no_model():
    x1 = np.tile([[10.0], [20.0]], (1, 4))
    models = []
    NormalizedSolver(Affine2DSolver(), UnnormalizerInverse()).solve(x1, x1 + 3.0, models)
    assert models == []
    assert all(np.all(np.isfinite(m)) for m in models)


def test_normalized_solver_short_input_raises():
    with pytest.raises(SampleSizeError):
        NormalizedSolver(Affine2DSolver(), UnnormalizerInverse()).solve(np.zeros((2, 2)), np.zeros((2, 2)), [])


# ---------- Usage from a consensus loop ----------
def test_kernel_drives_a_simple_consensus_loop():
    scene = make_scene(40, seed=8)
    x2 = scene.x2.copy()
    rng = np.random.default_rng(8)
    outliers = rng.choice(40, size=10, replace=False)
    x2[:, outliers] += rng.uniform(-0.2, 0.2, size=(2, 10))

    kernel = essential_kernel(scene.x1, x2, error=SampsonError())
    threshold = 1e-8
    best_model, best_count = None, -1
    for _ in range(50):
        models = []
        kernel.fit(rng.choice(kernel.num_samples(), size=kernel.minimum_samples, replace=False), models)
        for E in models:
            count = sum(kernel.error(i, E) < threshold for i in range(kernel.num_samples()))
            if count > best_count:
                best_model, best_count = E, count

    assert best_count == 30
    assert distance_up_to_sign(best_model, scene.E) < 1e-6
