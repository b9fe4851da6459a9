# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import Method, ResidualType
from .decompose import Factorization
from .utils import EPS


def _frozen(a) -> np.ndarray:
    a = np.array(a, copy=True)
    a.setflags(write=False)
    return a


def pct_var_explained(d: np.ndarray, eigsum: float) -> np.ndarray:
    """
    Percent of total variance per component: 100 d_i^2 / eigsum.

    An eigsum at or below EPS is roundoff, not variance, and gives zeros.
    """
    d = np.asarray(d, dtype=float)
    if eigsum <= EPS:
        return np.zeros_like(d)
    return 100.0 * d**2 / eigsum


@dataclass(frozen=True)
class ResultBundle:
    """
    Output of `corral` / `corralm`.

    `eigsum` is the total variance of the decomposed residual matrix, so
    `pct_var_exp` sums to 100 only when every component is kept.
    For multi-table results the columns of the concatenated matrix (and the
    rows of `v`) follow the input tables in order, `batch_sizes[t]` of them
    per table.
    """

    u: np.ndarray
    d: np.ndarray
    v: np.ndarray
    eigsum: float
    pct_var_exp: np.ndarray
    method: Method
    rtype: ResidualType
    batch_sizes: Optional[np.ndarray] = None
    batch_names: Optional[Tuple[str, ...]] = None

    @property
    def ncomp(self) -> int:
        return int(self.d.size)

    @property
    def cumulative_pct_var_exp(self) -> np.ndarray:
        return np.cumsum(self.pct_var_exp)

    def table_embeddings(self) -> List[np.ndarray]:
        """Split `v` into one block of rows per input table."""
        if self.batch_sizes is None:
            return [self.v]
        bounds = np.cumsum(self.batch_sizes)[:-1]
        return np.split(self.v, bounds, axis=0)


def assemble_result(
    fact: Factorization,
    method,
    rtype,
    batch_sizes: Optional[Sequence[int]] = None,
    batch_names: Optional[Sequence[str]] = None,
) -> ResultBundle:
    return ResultBundle(
        u=_frozen(fact.u),
        d=_frozen(fact.d),
        v=_frozen(fact.v),
        eigsum=float(fact.eigsum),
        pct_var_exp=_frozen(pct_var_explained(fact.d, fact.eigsum)),
        method=Method(method),
        rtype=ResidualType(rtype),
        batch_sizes=None if batch_sizes is None else _frozen(np.asarray(batch_sizes, dtype=int)),
        batch_names=None if batch_names is None else tuple(str(n) for n in batch_names),
    )
