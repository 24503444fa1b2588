from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)


def frame_to_matrix(frame: pd.DataFrame) -> tuple[np.ndarray, list[str], list[str]]:
    """Split a wide ratings DataFrame into (matrix, row_labels, col_labels)."""
    if frame.shape[0] < 1 or frame.shape[1] < 1:
        raise ValueError(f"ratings frame must be at least 1x1, got shape={frame.shape}")
    try:
        matrix = frame.to_numpy(dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError("ratings frame must contain only numeric values") from exc

    row_labels = [str(x) for x in frame.index.tolist()]
    col_labels = [str(x) for x in frame.columns.tolist()]
    return matrix, row_labels, col_labels


def load_rating_matrix(path: Path) -> pd.DataFrame:
    """Load a wide rating matrix CSV.

    The first column holds row labels and the header holds column labels.
    Blank cells are read as 0 (unobserved).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rating matrix not found: {path}")

    df = pd.read_csv(path, index_col=0)
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    df = df.fillna(0.0)

    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(f"{path.name} has non-numeric columns: {non_numeric}")

    logger.info("Loaded rating matrix rows=%d cols=%d from %s", df.shape[0], df.shape[1], path)
    return df.astype("float64")


def pivot_ratings(
    ratings: pd.DataFrame,
    *,
    row_col: str = "userId",
    item_col: str = "itemId",
    rating_col: str = "rating",
) -> pd.DataFrame:
    """Turn long-format (row, item, rating) records into a wide matrix.

    Unobserved pairs become 0. A rating of exactly 0 would be indistinguishable
    from "unobserved", so it is rejected along with NaNs and duplicate pairs.
    """
    required = [row_col, item_col, rating_col]
    missing = [c for c in required if c not in ratings.columns]
    if missing:
        raise ValueError(f"ratings missing required columns: {missing}")

    df = ratings[required].copy()
    if df.empty:
        raise ValueError("ratings is empty")
    if df[rating_col].isna().any():
        raise ValueError("ratings contains missing rating values")

    df[rating_col] = pd.to_numeric(df[rating_col], errors="raise").astype(float)
    if (df[rating_col] == 0.0).any():
        raise ValueError("ratings contains 0.0 values, which would be read as unobserved")
    if df.duplicated(subset=[row_col, item_col]).any():
        raise ValueError(f"ratings contains duplicate ({row_col}, {item_col}) rows")

    wide = df.pivot(index=row_col, columns=item_col, values=rating_col).fillna(0.0)
    wide.index = wide.index.astype(str)
    wide.columns = wide.columns.astype(str)
    wide.index.name = None
    wide.columns.name = None

    logger.info("Pivoted %d ratings into %dx%d matrix", len(df), wide.shape[0], wide.shape[1])
    return wide


def load_ratings(
    path: Path,
    *,
    row_col: str = "userId",
    item_col: str = "itemId",
    rating_col: str = "rating",
) -> pd.DataFrame:
    """Load a long-format ratings CSV and pivot it into a wide matrix."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ratings file not found: {path}")
    ratings = pd.read_csv(path)
    return pivot_ratings(ratings, row_col=row_col, item_col=item_col, rating_col=rating_col)
