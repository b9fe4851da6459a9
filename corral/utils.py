# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from typing import Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .errors import DegenerateInputError

EPS: float = 1e-12


def _where(table: Optional[int]) -> str:
    return "" if table is None else f" (table {table})"


def as_matrix(X, table: Optional[int] = None, copy: bool = True):
    """
    Return X as a float dense 2-D ndarray or a float CSR matrix.

    With copy=True (the default) nothing downstream can write into the
    caller's data; read-only callers pass copy=False.
    Raises DegenerateInputError on negative or non-finite entries.
    """
    if sp.issparse(X):
        M = sp.csr_matrix(X, dtype=float, copy=copy)
        values = M.data
    else:
        M = np.array(X, dtype=float) if copy else np.asarray(X, dtype=float)
        if M.ndim != 2:
            raise DegenerateInputError(
                f"expected a 2-D matrix{_where(table)}, got {M.ndim} dimension(s)"
            )
        values = M

    if not np.all(np.isfinite(values)):
        raise DegenerateInputError(f"matrix contains NaN or inf{_where(table)}")
    if np.any(values < 0):
        raise DegenerateInputError(f"matrix contains negative entries{_where(table)}")
    return M


def marginal_sums(M) -> Tuple[np.ndarray, np.ndarray]:
    """Row and column sums as flat float arrays (sparse stays sparse)."""
    rows = np.asarray(M.sum(axis=1), dtype=float).ravel()
    cols = np.asarray(M.sum(axis=0), dtype=float).ravel()
    return rows, cols


def matrix_shape(X, table: Optional[int] = None) -> Tuple[int, int]:
    """Shape of a 2-D matrix without copying it."""
    shape = X.shape if sp.issparse(X) else np.shape(X)
    if len(shape) != 2:
        raise DegenerateInputError(
            f"expected a 2-D matrix{_where(table)}, got shape {tuple(shape)}"
        )
    return int(shape[0]), int(shape[1])
