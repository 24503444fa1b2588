"""Matrix-factorization recommendation engine.

Core idea:
- Optionally remove an average-based bias (global, per-row, per-column) from the ratings
- Learn P (N x k) and Q (k x M) by gradient descent on the observed (non-zero) cells
- Add the bias back and rank each row's items by the dense estimate
- Recommend the items a row has not rated yet, best first
"""
from __future__ import annotations

from .bias import Bias, apply_bias, compute_bias
from .builder import build_model, build_model_from_frame, build_model_with_bias
from .factorizer import FactorizerConfig, calculate_error, calculate_total_error, factorize, train
from .model import ByIndex, ByLabel, RecommendationModel, ScoredItem

__all__ = [
    "Bias",
    "ByIndex",
    "ByLabel",
    "FactorizerConfig",
    "RecommendationModel",
    "ScoredItem",
    "apply_bias",
    "build_model",
    "build_model_from_frame",
    "build_model_with_bias",
    "calculate_error",
    "calculate_total_error",
    "compute_bias",
    "factorize",
    "train",
]
