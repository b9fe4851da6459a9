# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .errors import DegenerateInputError, DimensionMismatchError
from .utils import as_matrix, marginal_sums

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Weights:
    """Row/column masses of a count matrix and its grand total."""

    row_w: np.ndarray
    col_w: np.ndarray
    total: float


def _zero_marginal(sums: np.ndarray, axis: str, table: Optional[int]) -> None:
    zero = np.flatnonzero(sums <= 0)
    if zero.size:
        where = "" if table is None else f" in table {table}"
        shown = ", ".join(str(i) for i in zero[:5])
        more = "" if zero.size <= 5 else f" (+{zero.size - 5} more)"
        raise DegenerateInputError(
            f"{zero.size} {axis}(s) sum to zero{where}: index {shown}{more}; "
            f"{axis} weights are undefined"
        )


def compute_weights(X, table: Optional[int] = None) -> Weights:
    """
    Derive probability weights from a non-negative matrix.

        N        = sum of all entries
        row_w[i] = sum(row i) / N
        col_w[j] = sum(col j) / N

    Sparse input is summed in place, nothing is densified.

    Parameters
    ----------
    X : (m, n) ndarray or scipy.sparse matrix
        Raw (untransformed) counts.
    table : int or None
        Table index, only used in error messages.

    Raises
    ------
    DegenerateInputError
        If N is zero or any row or column sums to zero.
    """
    M = as_matrix(X, table=table, copy=False)
    rows, cols = marginal_sums(M)
    total = float(rows.sum())
    if total <= 0:
        where = "" if table is None else f" (table {table})"
        raise DegenerateInputError(f"matrix total is zero{where}")
    _zero_marginal(rows, "row", table)
    _zero_marginal(cols, "column", table)
    return Weights(row_w=rows / total, col_w=cols / total, total=total)


def normalize_weights(w, expected: int, axis: str) -> np.ndarray:
    """Rescale a caller-supplied weight vector so it sums to 1."""
    w = np.asarray(w, dtype=float).ravel()
    if w.shape != (expected,):
        raise DimensionMismatchError(
            f"{axis} weights have length {w.size}, matrix has {expected} {axis}s"
        )
    if not np.all(np.isfinite(w)) or np.any(w < 0):
        raise DegenerateInputError(f"{axis} weights must be finite and >= 0")
    s = w.sum()
    if s <= 0:
        raise DegenerateInputError(f"{axis} weights sum to zero")
    return w / s


def combine_row_weights(row_ws: Sequence[np.ndarray], contrib) -> np.ndarray:
    """
    Blend per-table row weights into one shared vector.

        combined = normalize( sum_t contrib[t] * row_ws[t] )

    Equal contributions give the mean of the tables' row weights; passing the
    tables' observation counts gives a size-weighted mean.
    """
    W = np.column_stack([np.asarray(w, dtype=float) for w in row_ws])
    contrib = np.asarray(contrib, dtype=float).ravel()
    if W.shape[1] != contrib.size:
        raise DimensionMismatchError(
            f"{W.shape[1]} row-weight vectors but {contrib.size} contributions"
        )
    combined = W @ contrib
    s = combined.sum()
    if s <= 0:
        raise DegenerateInputError(
            "combined row weights sum to zero; rw_contrib must have a positive entry"
        )
    logger.debug("combined row weights from %d tables", W.shape[1])
    return combined / s
