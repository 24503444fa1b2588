"""Build a recommendation model from a CSV file and print results for one row."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path

import pandas as pd

from ..builder import build_model_from_frame
from ..config import load_factorizer_config
from ..data import load_rating_matrix, load_ratings
from ..model import ByIndex, ByLabel
from ..utils import setup_logging


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Matrix-factorization recommendations for one row of a rating matrix.")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--matrix", type=Path, help="Wide CSV: first column row labels, header item labels")
    src.add_argument("--ratings", type=Path, help="Long CSV with row/item/rating columns")
    p.add_argument("--row-col", type=str, default="userId", help="Row column name for --ratings")
    p.add_argument("--item-col", type=str, default="itemId", help="Item column name for --ratings")
    p.add_argument("--rating-col", type=str, default="rating", help="Rating column name for --ratings")

    key = p.add_mutually_exclusive_group(required=True)
    key.add_argument("--row", type=str, help="Row label to query")
    key.add_argument("--row-index", type=int, help="0-based row index to query")

    p.add_argument("--config", type=Path, default=None, help="YAML config with a `factorizer:` section")
    p.add_argument("--bias", action="store_true", help="Remove/re-add average-based bias around training")
    p.add_argument("--all", action="store_true", help="Rank all items instead of only unrated ones")
    p.add_argument("--top-n", type=int, default=10, help="How many items to print")
    p.add_argument("--k", type=int, default=None, help="Override latent feature count")
    p.add_argument("--steps", type=int, default=None, help="Override maximum descent steps")
    p.add_argument("--alpha", type=float, default=None, help="Override learning rate")
    p.add_argument("--beta", type=float, default=None, help="Override regularization")
    p.add_argument("--seed", type=int, default=None, help="Override random seed")
    p.add_argument("--backend", type=str, default=None, choices=["numpy", "torch"], help="Override backend")
    p.add_argument("--log-level", type=str, default=None, help="Logging level (default: LIKELY_LOG_LEVEL or INFO)")
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if int(args.top_n) < 0:
        parser.error("--top-n must be >= 0")
    setup_logging(args.log_level)

    cfg = load_factorizer_config(
        args.config,
        k=args.k,
        steps=args.steps,
        alpha=args.alpha,
        beta=args.beta,
        seed=args.seed,
        backend=args.backend,
    )
    logger.info("Factorizer config: %s", dataclasses.asdict(cfg))

    if args.matrix is not None:
        frame = load_rating_matrix(args.matrix)
    else:
        frame = load_ratings(args.ratings, row_col=args.row_col, item_col=args.item_col, rating_col=args.rating_col)

    model = build_model_from_frame(frame, use_bias=bool(args.bias), config=cfg)

    row_key = ByLabel(args.row) if args.row is not None else ByIndex(int(args.row_index))
    if not model.has_row(row_key):
        logger.error("Row not found: %r", row_key)
        return 2

    if args.all:
        items = model.rank_all_items(row_key, limit=int(args.top_n))
        heading = "Ranked Items"
    else:
        items = model.recommendations(row_key, limit=int(args.top_n))
        heading = "Recommended Items"

    print(f"\n=== {heading} ===")
    if items:
        print(pd.DataFrame([dataclasses.asdict(s) for s in items]).to_string(index=False))
    else:
        print("No unrated items left for this row.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
