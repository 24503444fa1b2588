"""Model building: bias -> factorization -> bias re-composition -> model."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

from .bias import Bias, apply_bias, compute_bias
from .data import frame_to_matrix
from .factorizer import FactorizerConfig, factorize
from .matrix import as_rating_matrix, observed_mask
from .model import RecommendationModel, validate_labels


logger = logging.getLogger(__name__)


def _prepare(
    input_array: Any,
    row_labels: Optional[Sequence[Any]],
    col_labels: Optional[Sequence[Any]],
) -> np.ndarray:
    # Reject bad shapes/labels before any training work.
    matrix = as_rating_matrix(input_array)
    n_rows, n_cols = matrix.shape
    validate_labels(row_labels, n_rows, axis="row")
    validate_labels(col_labels, n_cols, axis="column")

    sparsity = 1.0 - float(observed_mask(matrix).mean())
    logger.info("Building model: rows=%d cols=%d sparsity=%.3f", n_rows, n_cols, sparsity)
    return matrix


def build_model(
    input_array: Any,
    row_labels: Optional[Sequence[Any]] = None,
    col_labels: Optional[Sequence[Any]] = None,
    config: FactorizerConfig | None = None,
) -> RecommendationModel:
    """Train without bias correction; the estimate is the raw P @ Q."""
    matrix = _prepare(input_array, row_labels, col_labels)

    t0 = time.perf_counter()
    result = factorize(matrix, config=config)
    logger.info("Model built in %.2fs (converged=%s)", time.perf_counter() - t0, result.converged)

    return RecommendationModel(matrix, estimated=result.estimate, row_labels=row_labels, col_labels=col_labels)


def build_model_with_bias(
    input_array: Any,
    bias: Bias | None = None,
    row_labels: Optional[Sequence[Any]] = None,
    col_labels: Optional[Sequence[Any]] = None,
    config: FactorizerConfig | None = None,
    *,
    observed_only: bool = False,
) -> RecommendationModel:
    """Train on bias-adjusted ratings and add the bias back to every cell.

    The bias is computed from the input when not supplied; `observed_only` only
    applies in that case.
    """
    matrix = _prepare(input_array, row_labels, col_labels)
    if bias is None:
        bias = compute_bias(matrix, observed_only=observed_only)
    else:
        bias.check_shape(matrix.shape)

    t0 = time.perf_counter()
    result = factorize(matrix, bias=bias, config=config)
    estimate = apply_bias(result.estimate, bias)
    logger.info(
        "Model built in %.2fs (converged=%s, bias average=%.4f)",
        time.perf_counter() - t0,
        result.converged,
        bias.average,
    )

    return RecommendationModel(matrix, estimated=estimate, row_labels=row_labels, col_labels=col_labels)


def build_model_from_frame(
    frame: pd.DataFrame,
    *,
    use_bias: bool = False,
    config: FactorizerConfig | None = None,
) -> RecommendationModel:
    """Build a model from a wide DataFrame; index and columns become labels."""
    matrix, row_labels, col_labels = frame_to_matrix(frame)
    if use_bias:
        return build_model_with_bias(matrix, row_labels=row_labels, col_labels=col_labels, config=config)
    return build_model(matrix, row_labels=row_labels, col_labels=col_labels, config=config)
