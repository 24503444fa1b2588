"""Trained recommendation model: ranking and "not yet rated" queries."""

from __future__ import annotations

import logging
import numbers
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .matrix import as_rating_matrix, observed_mask, read_only


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ByIndex:
    """Address a row by its 0-based position."""

    index: int

    def __post_init__(self) -> None:
        if isinstance(self.index, bool) or not isinstance(self.index, numbers.Integral):
            raise TypeError(f"row index must be an integer, got {self.index!r}")


@dataclass(frozen=True)
class ByLabel:
    """Address a row by its label (first match wins)."""

    label: str


RowKey = Union[ByIndex, ByLabel]
ItemKey = Union[int, str]


@dataclass(frozen=True)
class ScoredItem:
    item: ItemKey
    score: float


def validate_labels(labels: Optional[Sequence[Any]], expected: int, *, axis: str) -> Optional[tuple[str, ...]]:
    """Return labels as a tuple of strings, or raise if the length is wrong."""
    if labels is None:
        return None
    if isinstance(labels, str):
        raise ValueError(f"{axis} labels must be a sequence of labels, not a single string")
    out = tuple(str(x) for x in labels)
    if len(out) != int(expected):
        raise ValueError(f"{axis} labels length {len(out)} does not match matrix dimension {expected}")
    if len(set(out)) != len(out):
        logger.warning("Duplicate %s labels found; lookups resolve to the first occurrence", axis)
    return out


def _check_limit(limit: int | None) -> None:
    if limit is None:
        return
    if isinstance(limit, bool) or not isinstance(limit, numbers.Integral):
        raise TypeError(f"limit must be an integer, got {limit!r}")
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")


def _first_match_index(labels: tuple[str, ...]) -> dict[str, int]:
    lookup: dict[str, int] = {}
    for i, label in enumerate(labels):
        lookup.setdefault(label, i)
    return lookup


class RecommendationModel:
    """Holds the original ratings, the dense estimate and optional labels.

    `input` is read-only. `estimated` can be replaced after construction as long
    as the shape matches; when omitted it starts as a copy of the input.
    """

    def __init__(
        self,
        input_matrix: Any,
        *,
        estimated: Any | None = None,
        row_labels: Optional[Sequence[Any]] = None,
        col_labels: Optional[Sequence[Any]] = None,
    ) -> None:
        self._input = read_only(as_rating_matrix(input_matrix))
        self._observed = read_only(observed_mask(self._input))

        n_rows, n_cols = self._input.shape
        self._row_labels = validate_labels(row_labels, n_rows, axis="row")
        self._col_labels = validate_labels(col_labels, n_cols, axis="column")
        self._row_lookup = _first_match_index(self._row_labels) if self._row_labels is not None else {}
        self._col_lookup = _first_match_index(self._col_labels) if self._col_labels is not None else {}

        self._estimated = read_only(self._input.copy())
        if estimated is not None:
            self.estimated = estimated

    @property
    def input(self) -> np.ndarray:
        return self._input

    @property
    def estimated(self) -> np.ndarray:
        return self._estimated

    @estimated.setter
    def estimated(self, value: Any) -> None:
        est = np.array(value.to_numpy() if hasattr(value, "to_numpy") else value, dtype=np.float64)
        if est.shape != self._input.shape:
            raise ValueError(f"estimated shape {est.shape} does not match input shape {self._input.shape}")
        self._estimated = read_only(est)

    @property
    def row_labels(self) -> Optional[tuple[str, ...]]:
        return self._row_labels

    @property
    def col_labels(self) -> Optional[tuple[str, ...]]:
        return self._col_labels

    @property
    def shape(self) -> tuple[int, int]:
        n_rows, n_cols = self._input.shape
        return int(n_rows), int(n_cols)

    def find_row(self, key: RowKey) -> Optional[int]:
        """Resolve a row key to an index, or None when it does not exist."""
        if isinstance(key, ByIndex):
            idx = int(key.index)
            return idx if 0 <= idx < self.shape[0] else None
        if isinstance(key, ByLabel):
            return self._row_lookup.get(str(key.label))
        raise TypeError(f"row key must be ByIndex or ByLabel, got {type(key).__name__}")

    def find_column(self, label: str) -> Optional[int]:
        return self._col_lookup.get(str(label))

    def has_row(self, key: RowKey) -> bool:
        return self.find_row(key) is not None

    def _item_key(self, col: int) -> ItemKey:
        if self._col_labels is None:
            return int(col)
        return self._col_labels[col]

    def _item_column(self, item: ItemKey) -> Optional[int]:
        if self._col_labels is None:
            return int(item)
        return self.find_column(str(item))

    def _require_row(self, key: RowKey) -> int:
        row = self.find_row(key)
        if row is None:
            raise KeyError(f"Unknown row key: {key!r}")
        return row

    def rank_all_items(self, key: RowKey, *, limit: int | None = None) -> list[ScoredItem]:
        """All items for a row ordered by estimated score, highest first.

        Ties keep ascending column order.
        """
        _check_limit(limit)
        row = self._require_row(key)
        scores = self._estimated[row]
        order = np.argsort(-scores, kind="stable")
        ranked = [ScoredItem(item=self._item_key(int(j)), score=float(scores[int(j)])) for j in order]
        return ranked if limit is None else ranked[: int(limit)]

    def recommendations(self, key: RowKey, *, limit: int | None = None) -> list[ScoredItem]:
        """Items the row has not rated, ordered by estimated score."""
        _check_limit(limit)
        row = self._require_row(key)
        if limit == 0:
            return []
        seen = self._observed[row]
        out: list[ScoredItem] = []
        for scored in self.rank_all_items(ByIndex(row)):
            col = self._item_column(scored.item)
            if col is None or seen[col]:
                continue
            out.append(scored)
            if limit is not None and len(out) >= int(limit):
                break
        return out

    def to_frame(self) -> pd.DataFrame:
        """The estimate as a DataFrame indexed by row/column labels when present."""
        return pd.DataFrame(
            self._estimated,
            index=list(self._row_labels) if self._row_labels is not None else None,
            columns=list(self._col_labels) if self._col_labels is not None else None,
        )
