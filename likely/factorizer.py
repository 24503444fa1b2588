"""Gradient-descent matrix factorization with early stopping.

Learns P (N x k) and Q (k x M) such that P @ Q approximates the observed cells
of a rating matrix. Cells equal to zero are unobserved: they contribute neither
to the error nor to the gradients.

Two update orders are supported:

- "batch": every cell of a step reads P and Q as they were at the start of the
  step (a full-batch gradient step).
- "sequential": cells are visited in row-major order and each one reads the
  factors left behind by the previous cell.

Both converge to the same kind of fixed point but do not produce identical
numbers for the same seed.
"""

from __future__ import annotations

import logging
import numbers
import time
from dataclasses import dataclass, field
from typing import Any, Literal

import numpy as np

from .bias import Bias, adjust_for_bias
from .matrix import as_rating_matrix, observed_mask, random_matrix


logger = logging.getLogger(__name__)

UpdateOrder = Literal["batch", "sequential"]
Backend = Literal["numpy", "torch"]


def _require_integral(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class FactorizerConfig:
    k: int = 5
    steps: int = 5000
    alpha: float = 0.0005
    beta: float = 0.0007
    max_error: float = 0.0005
    seed: int | None = None
    update_order: UpdateOrder = "batch"
    backend: Backend = "numpy"
    device: str | None = None
    log_every: int = 500

    def __post_init__(self) -> None:
        for name in ("k", "steps", "log_every"):
            _require_integral(name, getattr(self, name))
        if self.seed is not None:
            _require_integral("seed", self.seed)
        if int(self.k) < 1:
            raise ValueError(f"k must be >= 1, got {self.k}")
        if int(self.steps) < 0:
            raise ValueError(f"steps must be >= 0, got {self.steps}")
        if not float(self.alpha) > 0.0:
            raise ValueError(f"alpha must be > 0, got {self.alpha}")
        if float(self.beta) < 0.0:
            raise ValueError(f"beta must be >= 0, got {self.beta}")
        if float(self.max_error) < 0.0:
            raise ValueError(f"max_error must be >= 0, got {self.max_error}")
        if self.update_order not in ("batch", "sequential"):
            raise ValueError(f"update_order must be 'batch' or 'sequential', got {self.update_order!r}")
        if self.backend not in ("numpy", "torch"):
            raise ValueError(f"backend must be 'numpy' or 'torch', got {self.backend!r}")
        if self.backend == "torch" and self.update_order != "batch":
            raise ValueError("the torch backend only supports update_order='batch'")
        if int(self.log_every) < 0:
            raise ValueError(f"log_every must be >= 0, got {self.log_every}")


@dataclass
class DescentTrace:
    P: np.ndarray
    Q: np.ndarray
    error_history: list[float] = field(default_factory=list)
    converged: bool = False

    @property
    def steps_run(self) -> int:
        return len(self.error_history)


@dataclass(frozen=True)
class FactorizationResult:
    estimate: np.ndarray
    converged: bool
    steps_run: int
    total_error: float
    error_history: list[float]


def calculate_error(estimate: Any, matrix: Any) -> np.ndarray:
    """Observed minus estimated on observed cells, zero everywhere else."""
    # Diverged estimates (NaN/inf) pass through so callers can judge them.
    est = np.asarray(estimate, dtype=np.float64)
    if est.ndim != 2:
        raise ValueError(f"estimate must be 2D, got shape={est.shape}")
    m = as_rating_matrix(matrix)
    if est.shape != m.shape:
        raise ValueError(f"estimate shape {est.shape} does not match input shape {m.shape}")
    return np.where(observed_mask(m), m - est, 0.0)


def calculate_total_error(error: Any) -> float:
    """Sum of squared entries of an error matrix."""
    e = np.asarray(error, dtype=np.float64)
    return float(np.sum(e * e))


def _batch_update(P: np.ndarray, Q: np.ndarray, error: np.ndarray, alpha: float, beta: float) -> None:
    active = error != 0.0
    # The regularization term is applied once per active cell of the row/column.
    row_counts = active.sum(axis=1, keepdims=True)
    col_counts = active.sum(axis=0, keepdims=True)
    grad_p = error @ Q.T - beta * row_counts * P
    grad_q = P.T @ error - beta * col_counts * Q
    P += alpha * grad_p
    Q += alpha * grad_q


def _sequential_update(P: np.ndarray, Q: np.ndarray, error: np.ndarray, alpha: float, beta: float) -> None:
    rows, cols = np.nonzero(error)
    for i, j in zip(rows.tolist(), cols.tolist()):
        e = error[i, j]
        p = P[i, :].copy()
        q = Q[:, j].copy()
        P[i, :] += alpha * (e * q - beta * p)
        Q[:, j] += alpha * (e * p - beta * q)


def descend(target: Any, P: Any, Q: Any, config: FactorizerConfig | None = None) -> DescentTrace:
    """Run gradient descent from the given factors.

    `P` and `Q` are copied; the caller's arrays are left untouched. The error
    history holds the total squared error measured at the start of every step,
    before that step's update.
    """
    cfg = config or FactorizerConfig()
    t = as_rating_matrix(target, name="target")
    P = np.array(P, dtype=np.float64)
    Q = np.array(Q, dtype=np.float64)
    if P.ndim != 2 or Q.ndim != 2 or P.shape[1] != Q.shape[0]:
        raise ValueError(f"incompatible factor shapes P={P.shape} Q={Q.shape}")
    if (P.shape[0], Q.shape[1]) != t.shape:
        raise ValueError(f"factors produce shape {(P.shape[0], Q.shape[1])}, target is {t.shape}")

    if cfg.backend == "torch":
        from .torch_backend import descend_torch

        P, Q, history, converged = descend_torch(t, P, Q, cfg)
        return DescentTrace(P=P, Q=Q, error_history=history, converged=converged)

    mask = observed_mask(t)
    update = _sequential_update if cfg.update_order == "sequential" else _batch_update
    alpha = float(cfg.alpha)
    beta = float(cfg.beta)

    trace = DescentTrace(P=P, Q=Q)
    for step in range(int(cfg.steps)):
        error = np.where(mask, t - P @ Q, 0.0)
        update(P, Q, error, alpha, beta)

        total = calculate_total_error(error)
        trace.error_history.append(total)
        if cfg.log_every and (step + 1) % int(cfg.log_every) == 0:
            logger.debug("descent step=%d total_error=%.6f", step + 1, total)
        if total < float(cfg.max_error):
            trace.converged = True
            break
    return trace


def factorize(matrix: Any, bias: Bias | None = None, config: FactorizerConfig | None = None) -> FactorizationResult:
    """Factorize a rating matrix and return the raw P @ Q estimate with diagnostics.

    When `bias` is given the model is fit to the bias-adjusted observations; the
    returned estimate does NOT include the bias (see `bias.apply_bias`).
    """
    cfg = config or FactorizerConfig()
    m = as_rating_matrix(matrix)
    target = m if bias is None else adjust_for_bias(m, bias)

    n_rows, n_cols = target.shape
    rng = np.random.default_rng(cfg.seed)
    P = random_matrix(n_rows, cfg.k, rng)
    Q = random_matrix(cfg.k, n_cols, rng)

    logger.info(
        "Factorizing %dx%d matrix: k=%d steps=%d alpha=%g beta=%g update_order=%s backend=%s",
        n_rows,
        n_cols,
        int(cfg.k),
        int(cfg.steps),
        float(cfg.alpha),
        float(cfg.beta),
        cfg.update_order,
        cfg.backend,
    )
    t0 = time.perf_counter()
    trace = descend(target, P, Q, cfg)
    elapsed = time.perf_counter() - t0

    estimate = trace.P @ trace.Q
    # Diverged runs are returned as-is, so no finiteness validation here.
    total_error = calculate_total_error(np.where(observed_mask(target), target - estimate, 0.0))
    logger.info(
        "Factorization %s after %d steps in %.2fs: total_error=%.6f",
        "converged" if trace.converged else "stopped",
        trace.steps_run,
        elapsed,
        total_error,
    )
    return FactorizationResult(
        estimate=estimate,
        converged=trace.converged,
        steps_run=trace.steps_run,
        total_error=total_error,
        error_history=list(trace.error_history),
    )


def train(matrix: Any, bias: Bias | None = None, config: FactorizerConfig | None = None) -> np.ndarray:
    """Return the factorized estimate P @ Q (bias not added back)."""
    return factorize(matrix, bias=bias, config=config).estimate
