# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import svds

from .config import Method
from .errors import RankTooLargeError
from .preprocess import ResidualOperator
from .utils import EPS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Factorization:
    """
    Rank-k truncated SVD  R ~ u diag(d) v'.

    u      : (m, k) left singular vectors
    d      : (k,)   singular values, non-increasing
    v      : (n, k) right singular vectors
    eigsum : sum of squares of *all* singular values of R (its squared
             Frobenius norm), not only of the k returned here

    The sign of each (u[:, i], v[:, i]) pair is arbitrary.
    """

    u: np.ndarray
    d: np.ndarray
    v: np.ndarray
    eigsum: float


def check_rank(shape: Tuple[int, int], ncomp: int, method=Method.ITERATIVE) -> None:
    """
    Fail before any work if `ncomp` components cannot be computed.

    ARPACK only returns k < min(m, n) triplets; the exact path allows the
    full rank min(m, n).
    """
    method = Method(method)
    m, n = shape
    limit = min(m, n) - 1 if method is Method.ITERATIVE else min(m, n)
    if ncomp > limit:
        raise RankTooLargeError(
            f"ncomp={ncomp} is too large for a {m}x{n} matrix with "
            f"method={method.value!r}; at most {limit} component(s) available"
        )


def squared_norm(R) -> float:
    """Squared Frobenius norm of a dense, sparse or implicit residual."""
    if isinstance(R, ResidualOperator):
        return R.squared_norm()
    if sp.issparse(R):
        return float(np.sum(R.data**2))
    return float(np.sum(np.asarray(R) ** 2))


def truncated_svd(R, ncomp: int, method=Method.ITERATIVE, seed: int = 0) -> Factorization:
    """
    Top-`ncomp` singular triplets of a (preprocessed) matrix.

    Algorithm outline
    -----------------
    iterative
        Implicitly restarted Lanczos (ARPACK, scipy.sparse.linalg.svds).
        Works on dense arrays, sparse matrices and ResidualOperator alike,
        touching R only through products, so large sparse inputs are never
        materialized. The start vector comes from `seed`, which makes runs
        repeatable.
    exact
        Dense LAPACK SVD (numpy.linalg.svd, economy size), then truncate.

    Both paths return singular values sorted largest first.
    A residual with no variance (eigsum <= EPS) has no dominant directions;
    it returns d = 0 with the leading coordinate axes as u and v, without
    calling either solver.
    """
    method = Method(method)
    check_rank(R.shape, ncomp, method)
    m, n = R.shape
    eigsum = squared_norm(R)

    if eigsum <= EPS:
        logger.debug("residual %s has no variance (eigsum=%.3g); returning zeros", R.shape, eigsum)
        return Factorization(
            u=np.eye(m, ncomp), d=np.zeros(ncomp), v=np.eye(n, ncomp), eigsum=0.0
        )

    if method is Method.ITERATIVE:
        logger.debug("ARPACK svds on %s %s, k=%d", type(R).__name__, R.shape, ncomp)
        v0 = np.random.default_rng(seed).standard_normal(min(m, n))
        U, s, Vt = svds(R, k=ncomp, v0=v0, which="LM")
    else:
        if isinstance(R, ResidualOperator) or sp.issparse(R):
            R = R.toarray()
        logger.debug("LAPACK svd on %s, keeping %d", R.shape, ncomp)
        U, s, Vt = np.linalg.svd(np.asarray(R, dtype=float), full_matrices=False)

    # svds returns ascending order; stable sort keeps equal values in place
    idx = np.argsort(-s, kind="stable")[:ncomp]
    d = np.clip(s[idx], 0.0, None)
    return Factorization(u=U[:, idx], d=d, v=Vt[idx].T, eigsum=eigsum)
