from __future__ import annotations

import numpy as np
import pytest

from likely.bias import compute_bias
from likely.factorizer import (
    FactorizerConfig,
    calculate_error,
    calculate_total_error,
    descend,
    factorize,
    train,
)


RANK_ONE = np.outer([1.0, 2.0, 3.0], [1.0, 2.0, 1.0, 3.0])


def test_calculate_error_is_zero_for_exact_estimate() -> None:
    P = np.full((3, 2), 2.0)
    Q = np.full((2, 3), 2.0)
    inp = np.full((3, 3), 8.0)

    np.testing.assert_array_equal(calculate_error(P @ Q, inp), np.zeros((3, 3)))


def test_calculate_error_ignores_unobserved_cells() -> None:
    err = calculate_error([[1.0, 1.0, 4.0]], [[3.0, 0.0, 2.0]])
    np.testing.assert_array_equal(err, [[2.0, 0.0, -2.0]])


def test_calculate_error_shape_mismatch() -> None:
    with pytest.raises(ValueError):
        calculate_error(np.zeros((2, 2)), np.zeros((2, 3)))


def test_calculate_total_error() -> None:
    assert calculate_total_error(np.zeros((3, 3))) == 0
    assert calculate_total_error([[1, -2, 0.5], [1, 0, -2]]) == 10.25


@pytest.mark.parametrize(
    "kwargs",
    [
        {"k": 0},
        {"alpha": 0.0},
        {"alpha": -0.1},
        {"beta": -0.001},
        {"steps": -1},
        {"max_error": -1.0},
        {"update_order": "random"},
        {"backend": "jax"},
        {"backend": "torch", "update_order": "sequential"},
    ],
)
def test_config_rejects_invalid_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FactorizerConfig(**kwargs)


def test_config_defaults() -> None:
    cfg = FactorizerConfig()
    assert (cfg.k, cfg.steps, cfg.alpha, cfg.beta, cfg.max_error) == (5, 5000, 0.0005, 0.0007, 0.0005)


def test_batch_step_uses_pre_update_factors() -> None:
    cfg = FactorizerConfig(k=1, steps=1, alpha=0.1, beta=0.0, max_error=0.0)
    trace = descend([[2.0, 2.0]], [[1.0]], [[1.0, 1.0]], cfg)

    np.testing.assert_allclose(trace.P, [[1.2]])
    np.testing.assert_allclose(trace.Q, [[1.1, 1.1]])
    assert trace.error_history == [2.0]
    assert trace.steps_run == 1
    assert not trace.converged


def test_sequential_step_reads_previous_cell_updates() -> None:
    cfg = FactorizerConfig(k=1, steps=1, alpha=0.1, beta=0.0, max_error=0.0, update_order="sequential")
    trace = descend([[2.0, 2.0]], [[1.0]], [[1.0, 1.0]], cfg)

    np.testing.assert_allclose(trace.P, [[1.2]])
    np.testing.assert_allclose(trace.Q, [[1.1, 1.11]])


def test_regularization_shrinks_factors() -> None:
    cfg = FactorizerConfig(k=1, steps=1, alpha=0.1, beta=0.5, max_error=0.0)
    trace = descend([[2.0]], [[1.0]], [[1.0]], cfg)

    np.testing.assert_allclose(trace.P, [[1.05]])
    np.testing.assert_allclose(trace.Q, [[1.05]])


def test_unobserved_cells_do_not_move_factors() -> None:
    cfg = FactorizerConfig(k=1, steps=1, alpha=0.1, beta=0.5, max_error=0.0)
    trace = descend([[2.0, 0.0]], [[1.0]], [[1.0, 1.0]], cfg)

    assert trace.Q[0, 1] == 1.0


def test_descend_does_not_mutate_inputs() -> None:
    P = np.ones((2, 1))
    Q = np.ones((1, 2))
    descend([[2.0, 2.0], [2.0, 2.0]], P, Q, FactorizerConfig(k=1, steps=5))

    np.testing.assert_array_equal(P, np.ones((2, 1)))
    np.testing.assert_array_equal(Q, np.ones((1, 2)))


def test_descend_rejects_incompatible_factors() -> None:
    with pytest.raises(ValueError):
        descend(np.ones((2, 2)), np.ones((2, 1)), np.ones((2, 2)))
    with pytest.raises(ValueError):
        descend(np.ones((2, 2)), np.ones((3, 1)), np.ones((1, 2)))


def test_error_decreases_monotonically_on_dense_low_rank_input() -> None:
    target = np.outer([1.0, 2.0], [1.0, 1.0, 2.0])
    cfg = FactorizerConfig(k=1, steps=3000, alpha=0.002, beta=0.0, max_error=1e-6, seed=0)
    result = factorize(target, config=cfg)

    history = np.array(result.error_history)
    assert (np.diff(history) <= 1e-12).all()
    assert history[-1] < history[0]


def test_early_stop_before_steps_exhausted() -> None:
    cfg = FactorizerConfig(k=1, steps=50000, alpha=0.005, beta=0.0, max_error=1e-3, seed=0)
    result = factorize(RANK_ONE, config=cfg)

    assert result.converged
    assert result.steps_run < cfg.steps
    assert result.steps_run == len(result.error_history)
    assert result.error_history[-1] < cfg.max_error
    np.testing.assert_allclose(result.estimate, RANK_ONE, atol=0.05)


def test_steps_exhausted_without_convergence() -> None:
    cfg = FactorizerConfig(k=2, steps=3, seed=0)
    result = factorize(RANK_ONE, config=cfg)

    assert not result.converged
    assert result.steps_run == 3


def test_zero_steps_returns_initial_product() -> None:
    cfg = FactorizerConfig(k=2, steps=0, seed=5)
    result = factorize(RANK_ONE, config=cfg)

    assert result.steps_run == 0
    assert result.estimate.shape == RANK_ONE.shape
    assert ((result.estimate >= 0.0) & (result.estimate < 2.0)).all()


def test_seed_controls_initialisation() -> None:
    cfg = FactorizerConfig(k=2, steps=10, seed=11)
    a = train(RANK_ONE, config=cfg)
    b = train(RANK_ONE, config=cfg)
    c = train(RANK_ONE, config=FactorizerConfig(k=2, steps=10, seed=12))

    np.testing.assert_array_equal(a, b)
    assert not np.array_equal(a, c)


def test_sequential_order_converges_on_sparse_input() -> None:
    inp = np.array([[5.0, 3.0, 0.0, 1.0], [4.0, 0.0, 0.0, 1.0], [1.0, 1.0, 0.0, 5.0]])
    cfg = FactorizerConfig(k=3, steps=5000, alpha=0.01, update_order="sequential", seed=2)
    estimate = train(inp, config=cfg)

    assert calculate_total_error(calculate_error(estimate, inp)) < 0.1


def test_train_with_bias_returns_estimate_without_bias() -> None:
    inp = np.array([[5.0, 3.0, 4.0], [4.0, 2.0, 1.0], [1.0, 1.0, 5.0], [2.0, 4.0, 3.0]])
    bias = compute_bias(inp)
    cfg = FactorizerConfig(k=3, steps=30000, alpha=0.005, seed=4)
    estimate = train(inp, bias=bias, config=cfg)

    # The raw estimate fits the bias-adjusted ratings, not the ratings themselves.
    adjusted = inp - bias.offsets()
    assert calculate_total_error(estimate - adjusted) < 0.1
    assert calculate_total_error(estimate - inp) > 1.0


def test_invalid_input_rejected_before_training() -> None:
    with pytest.raises(ValueError):
        train([[1.0, 2.0], [3.0]])
    with pytest.raises(ValueError):
        train([])
    with pytest.raises(ValueError):
        train([[1.0, float("nan")]])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"k": 2.5},
        {"k": True},
        {"steps": 10.0},
        {"log_every": 1.5},
        {"seed": 1.5},
    ],
)
def test_config_rejects_non_integral_counts(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FactorizerConfig(**kwargs)


def test_calculate_error_passes_non_finite_estimate_through() -> None:
    estimate = np.array([[np.inf, 1.0], [np.nan, 2.0]])
    err = calculate_error(estimate, [[1.0, 0.0], [3.0, 2.0]])

    assert np.isinf(err[0, 0])
    assert err[0, 1] == 0.0
    assert np.isnan(err[1, 0])
    assert not np.isfinite(calculate_total_error(err))


def test_diverged_training_returns_values_as_produced() -> None:
    with np.errstate(all="ignore"):
        result = factorize([[1.0, 2.0], [3.0, 4.0]], config=FactorizerConfig(k=2, steps=200, alpha=5.0, seed=0))

    assert not np.isfinite(result.estimate).all()
    assert not result.converged
