"""Rating-matrix helpers on top of numpy.

numpy provides the matrix arithmetic itself (multiply, subtract, transpose,
elementwise ops). This module only adds what the rest of the package needs on
top: validation of incoming rating data, random factor initialisation and the
observed mask that encodes the "zero means unobserved" convention.
"""

from __future__ import annotations

from typing import Any

import numpy as np


def as_rating_matrix(data: Any, *, name: str = "input") -> np.ndarray:
    """Validate `data` and return it as a fresh 2D float64 array.

    Accepts nested lists, numpy arrays or pandas DataFrames. Raises
    ValueError for ragged, empty, non-2D or non-finite input.
    """
    if hasattr(data, "to_numpy"):
        data = data.to_numpy()

    if isinstance(data, (list, tuple)):
        if len(data) == 0:
            raise ValueError(f"{name} must have at least one row")
        widths = {len(row) if isinstance(row, (list, tuple, np.ndarray)) else -1 for row in data}
        if len(widths) != 1:
            raise ValueError(f"{name} is not rectangular: row lengths {sorted(widths)}")

    try:
        matrix = np.array(data, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a numeric 2D matrix") from exc

    if matrix.ndim != 2:
        raise ValueError(f"{name} must be 2D, got shape={matrix.shape}")
    n_rows, n_cols = matrix.shape
    if n_rows < 1 or n_cols < 1:
        raise ValueError(f"{name} must be at least 1x1, got shape={matrix.shape}")
    if not np.isfinite(matrix).all():
        raise ValueError(f"{name} contains NaN or infinite values")
    return matrix


def observed_mask(matrix: np.ndarray) -> np.ndarray:
    """Boolean mask of observed cells (every non-zero entry)."""
    return np.asarray(matrix) != 0.0


def random_matrix(n_rows: int, n_cols: int, rng: np.random.Generator) -> np.ndarray:
    """Matrix of independent uniform [0, 1) values."""
    return rng.random((int(n_rows), int(n_cols)), dtype=np.float64)


def read_only(matrix: np.ndarray) -> np.ndarray:
    matrix.setflags(write=False)
    return matrix
