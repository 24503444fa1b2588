"""Average-based bias (global mean, per-row and per-column offsets).

The bias is removed from observed ratings before factorization and added back
to every cell of the factorized estimate afterwards.

By default averages are taken over every cell, unobserved zeros included, so
sparse rows and columns are pulled towards zero. `observed_only=True` divides
by the number of observed cells instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np

from .matrix import as_rating_matrix, observed_mask, read_only


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Bias:
    average: float
    row_bias: np.ndarray
    col_bias: np.ndarray

    def __post_init__(self) -> None:
        row_bias = np.array(self.row_bias, dtype=np.float64).reshape(-1)
        col_bias = np.array(self.col_bias, dtype=np.float64).reshape(-1)
        if row_bias.size < 1 or col_bias.size < 1:
            raise ValueError("Bias needs at least one row and one column entry")
        object.__setattr__(self, "average", float(self.average))
        object.__setattr__(self, "row_bias", read_only(row_bias))
        object.__setattr__(self, "col_bias", read_only(col_bias))

    @property
    def shape(self) -> tuple[int, int]:
        return int(self.row_bias.size), int(self.col_bias.size)

    def offsets(self) -> np.ndarray:
        """Per-cell offset: average + row_bias[i] + col_bias[j]."""
        return self.average + self.row_bias[:, None] + self.col_bias[None, :]

    def check_shape(self, shape: tuple[int, int]) -> None:
        if tuple(shape) != self.shape:
            raise ValueError(f"Bias shape {self.shape} does not match matrix shape {tuple(shape)}")


def calculate_matrix_average(matrix: Any) -> float:
    """Sum of all cells divided by N*M."""
    m = as_rating_matrix(matrix)
    return float(m.sum() / m.size)


def calculate_row_average(matrix: Any) -> np.ndarray:
    """Row sums divided by the number of columns."""
    m = as_rating_matrix(matrix)
    return m.sum(axis=1) / m.shape[1]


def calculate_column_average(matrix: Any) -> np.ndarray:
    """Column sums divided by the number of rows."""
    m = as_rating_matrix(matrix)
    return m.sum(axis=0) / m.shape[0]


def _observed_averages(m: np.ndarray) -> tuple[float, np.ndarray, np.ndarray]:
    mask = observed_mask(m)
    n_obs = int(mask.sum())
    average = float(m.sum() / n_obs) if n_obs else 0.0

    row_counts = mask.sum(axis=1)
    col_counts = mask.sum(axis=0)
    # Rows/columns without observations fall back to the global average (zero bias).
    row_avg = np.full(m.shape[0], average)
    col_avg = np.full(m.shape[1], average)
    np.divide(m.sum(axis=1), row_counts, out=row_avg, where=row_counts > 0)
    np.divide(m.sum(axis=0), col_counts, out=col_avg, where=col_counts > 0)
    return average, row_avg, col_avg


def compute_bias(matrix: Any, *, observed_only: bool = False) -> Bias:
    """Compute global, per-row and per-column bias of a rating matrix."""
    m = as_rating_matrix(matrix)
    if observed_only:
        average, row_avg, col_avg = _observed_averages(m)
    else:
        average = float(m.sum() / m.size)
        row_avg = m.sum(axis=1) / m.shape[1]
        col_avg = m.sum(axis=0) / m.shape[0]

    bias = Bias(average=average, row_bias=row_avg - average, col_bias=col_avg - average)
    logger.debug(
        "Bias computed: shape=%s average=%.4f observed_only=%s",
        bias.shape,
        bias.average,
        bool(observed_only),
    )
    return bias


def adjust_for_bias(matrix: Any, bias: Bias) -> np.ndarray:
    """Subtract the bias from observed cells; unobserved cells stay zero."""
    m = as_rating_matrix(matrix)
    bias.check_shape(m.shape)
    return np.where(observed_mask(m), m - bias.offsets(), 0.0)


def apply_bias(estimate: Any, bias: Bias) -> np.ndarray:
    """Add the bias back onto every cell of a factorized estimate.

    Non-finite estimates (a diverged run) pass through unchecked.
    """
    est = np.asarray(estimate, dtype=np.float64)
    if est.ndim != 2:
        raise ValueError(f"estimate must be 2D, got shape={est.shape}")
    bias.check_shape(est.shape)
    return est + bias.offsets()
