"""Regression check: factorize a fixed sparse matrix and compare total error to a threshold."""

from __future__ import annotations

import argparse
import logging

import numpy as np
import pandas as pd

from ..builder import build_model
from ..factorizer import FactorizerConfig, calculate_error, calculate_total_error
from ..utils import setup_logging


logger = logging.getLogger(__name__)

REGRESSION_INPUT = np.array(
    [
        [1, 0, 3, 1, 0],
        [2, 3, 0, 0, 5],
        [3, 1, 3, 4, 1],
        [0, 1, 1, 1, 1],
    ],
    dtype=np.float64,
)

# Squared error summed over observed cells.
DEFAULT_MAX_TOTAL_ERROR = 1.0


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Regression check for the factorization engine.")
    p.add_argument("--max-total-error", type=float, default=DEFAULT_MAX_TOTAL_ERROR, help="Failure threshold")
    p.add_argument("--k", type=int, default=5, help="Latent feature count")
    p.add_argument("--steps", type=int, default=5000, help="Maximum descent steps")
    p.add_argument("--alpha", type=float, default=0.0005, help="Learning rate")
    p.add_argument("--beta", type=float, default=0.0007, help="Regularization")
    p.add_argument("--seed", type=int, default=42, help="Random seed")
    p.add_argument("--log-level", type=str, default=None, help="Logging level")
    return p


def run_regression(cfg: FactorizerConfig, *, max_total_error: float = DEFAULT_MAX_TOTAL_ERROR) -> tuple[bool, float]:
    """Return (passed, total_error) for the fixed regression matrix."""
    model = build_model(REGRESSION_INPUT, config=cfg)
    error_matrix = calculate_error(model.estimated, model.input)
    total = calculate_total_error(error_matrix)

    logger.info("Input matrix:\n%s", pd.DataFrame(model.input).to_string())
    logger.info("Estimated matrix:\n%s", pd.DataFrame(model.estimated).round(3).to_string())
    logger.info("Error matrix:\n%s", pd.DataFrame(error_matrix).round(3).to_string())
    logger.info("Total error: %.6f (threshold %.6f)", total, float(max_total_error))
    return total <= float(max_total_error), total


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    cfg = FactorizerConfig(k=args.k, steps=args.steps, alpha=args.alpha, beta=args.beta, seed=args.seed)
    passed, total = run_regression(cfg, max_total_error=args.max_total_error)
    if not passed:
        logger.error("FAIL - total error %.6f exceeds %.6f", total, float(args.max_total_error))
        return 1
    logger.info("SUCCESS")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
