# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Preprocessing: counts -> residual matrix ready for the SVD.

Pipeline, always in this order
------------------------------
1. weights from the raw counts            (weights.compute_weights)
2. variance-stabilizing transform          (var_stabilize)
3. residual transform against the weights  (residuals)
4. optional power deflation                (power_deflate)
5. optional extreme-value trimming         (trim_extremes)

With sparse input, steps 1-3 never densify for `vst_mth` in
{'none', 'sqrt'} and `rtype` in {'indexed', 'standardized', 'pearson',
'hellinger'}: every one of those residuals can be written as a sparse
matrix minus a rank-one term, which `ResidualOperator` keeps implicit.
"""

import logging
from typing import List, Optional

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import LinearOperator

from .config import CHISQ_RESIDUALS, CorralConfig, ResidualType, VarianceStabilizer
from .utils import as_matrix
from .weights import compute_weights, normalize_weights

logger = logging.getLogger(__name__)


class ResidualOperator(LinearOperator):
    """
    Implicit ``R = M - L @ Rt.T`` with ``M`` sparse and ``L``, ``Rt`` thin.

    sparse : (m, n) CSR matrix        M
    left   : (m, q) ndarray           L
    right  : (n, q) ndarray           Rt

    Products with R cost one sparse product plus O((m + n) q), so ARPACK
    can work on R without it ever being materialized.
    """

    def __init__(self, sparse, left: np.ndarray, right: np.ndarray):
        self.sparse = sp.csr_matrix(sparse, dtype=float)
        m, n = self.sparse.shape
        self.left = np.asarray(left, dtype=float).reshape(m, -1)
        self.right = np.asarray(right, dtype=float).reshape(n, -1)
        if self.left.shape[1] != self.right.shape[1]:
            raise ValueError("left and right factors must have the same number of columns")
        super().__init__(dtype=np.dtype(float), shape=(m, n))

    def _matvec(self, x):
        x = np.asarray(x, dtype=float).ravel()
        return self.sparse @ x - self.left @ (self.right.T @ x)

    def _rmatvec(self, y):
        y = np.asarray(y, dtype=float).ravel()
        return self.sparse.T @ y - self.right @ (self.left.T @ y)

    def _matmat(self, X):
        return self.sparse @ X - self.left @ (self.right.T @ X)

    def _rmatmat(self, Y):
        return self.sparse.T @ Y - self.right @ (self.left.T @ Y)

    def toarray(self) -> np.ndarray:
        return self.sparse.toarray() - self.left @ self.right.T

    def squared_norm(self) -> float:
        """
        Squared Frobenius norm without densifying:

            ||M - L Rt'||^2 = ||M||^2 - 2 tr(L' M Rt) + tr((L'L)(Rt'Rt))
        """
        m2 = float(np.sum(self.sparse.data**2))
        cross = float(np.sum(self.left * (self.sparse @ self.right)))
        low = float(np.sum((self.left.T @ self.left) * (self.right.T @ self.right)))
        # the three terms can cancel; a norm is never negative
        return max(m2 - 2.0 * cross + low, 0.0)

    @classmethod
    def hstack(cls, blocks: List["ResidualOperator"]) -> "ResidualOperator":
        """[M1 - L1 Rt1', M2 - L2 Rt2', ...] as one operator."""
        sparse = sp.hstack([b.sparse for b in blocks], format="csr")
        left = np.hstack([b.left for b in blocks])
        right = np.zeros((sparse.shape[1], left.shape[1]))
        r = c = 0
        for b in blocks:
            n, q = b.right.shape
            right[r : r + n, c : c + q] = b.right
            r += n
            c += q
        return cls(sparse, left, right)


def var_stabilize(M, vst_mth="none"):
    """
    Elementwise variance-stabilizing transform.

        none          x
        sqrt          sqrt(x)
        anscombe      2 sqrt(x + 3/8)
        freemantukey  sqrt(x) + sqrt(x + 1)

    `none` and `sqrt` map 0 to 0 and keep sparse input sparse; the other two
    do not, so sparse input is densified for them.
    """
    vst = VarianceStabilizer(vst_mth)
    if vst is VarianceStabilizer.NONE:
        return M

    if sp.issparse(M):
        if vst is VarianceStabilizer.SQRT:
            return M.sqrt()
        logger.debug("vst_mth=%s densifies sparse input %s", vst.value, M.shape)
        M = M.toarray()

    if vst is VarianceStabilizer.SQRT:
        return np.sqrt(M)
    if vst is VarianceStabilizer.ANSCOMBE:
        return 2.0 * np.sqrt(M + 3.0 / 8.0)
    return np.sqrt(M) + np.sqrt(M + 1.0)


def residuals(M, row_w: np.ndarray, col_w: np.ndarray, rtype="indexed"):
    """
    Residuals of M against the independence model E = row_w col_w'.

    With p = M / sum(M):

        indexed, standardized, pearson   (p - E) / sqrt(E)
        freemantukey                     sqrt(p) + sqrt(p + 1/N) - sqrt(4E + 1/N)
        hellinger                        sqrt(p) - sqrt(E)

    `indexed`, `standardized` and `pearson` are the same computation under
    three names.

    Returns an ndarray, or a ResidualOperator for sparse M when the residual
    is "sparse minus rank one".
    """
    rtype = ResidualType(rtype)
    row_w = np.asarray(row_w, dtype=float)
    col_w = np.asarray(col_w, dtype=float)
    N = float(M.sum())
    P = M / N

    if sp.issparse(P) and rtype is not ResidualType.FREEMANTUKEY:
        P = sp.csr_matrix(P)
        sr, sc = np.sqrt(row_w), np.sqrt(col_w)
        if rtype is ResidualType.HELLINGER:
            return ResidualOperator(P.sqrt(), sr, sc)
        scaled = sp.diags(1.0 / sr) @ P @ sp.diags(1.0 / sc)
        return ResidualOperator(scaled, sr, sc)

    if sp.issparse(P):
        logger.debug("rtype=%s densifies sparse input %s", rtype.value, P.shape)
        P = P.toarray()
    P = np.asarray(P)
    E = np.outer(row_w, col_w)

    if rtype in CHISQ_RESIDUALS:
        return (P - E) / np.sqrt(E)
    if rtype is ResidualType.FREEMANTUKEY:
        return np.sqrt(P) + np.sqrt(P + 1.0 / N) - np.sqrt(4.0 * E + 1.0 / N)
    return np.sqrt(P) - np.sqrt(E)


def _dense(R) -> np.ndarray:
    if isinstance(R, ResidualOperator):
        logger.debug("materializing residual operator %s", R.shape)
        return R.toarray()
    return R


def power_deflate(R, alpha: Optional[float] = None):
    """
    sign(r) |r|^alpha, elementwise.

    Shrinks large residuals more than small ones; alpha=None or alpha=1
    returns R untouched.
    """
    if alpha is None or alpha == 1.0:
        return R
    R = _dense(R)
    return np.sign(R) * np.abs(R) ** alpha


def trim_extremes(R, pct_trim: float = 0.01):
    """
    Winsorize R: clamp values beyond the `pct_trim` and `1 - pct_trim`
    quantiles to those quantiles. pct_trim=0 returns R untouched.
    """
    if pct_trim == 0:
        return R
    R = _dense(R)
    lo, hi = np.quantile(R, [pct_trim, 1.0 - pct_trim])
    return np.clip(R, min(lo, hi), max(lo, hi))


def preprocess(
    X,
    config: Optional[CorralConfig] = None,
    row_w=None,
    table: Optional[int] = None,
    **options,
):
    """
    Run the full preprocessing pipeline on one matrix.

    Parameters
    ----------
    X : (m, n) array-like or scipy.sparse matrix
        Non-negative counts; never modified.
    config : CorralConfig or None
        Validated options. If None one is built from `**options`.
    row_w : array-like or None
        Replaces the matrix's own row weights (rescaled to sum to 1). Used
        by `corralm` to share one row-weight vector across tables.
    table : int or None
        Table index for error messages.

    Returns
    -------
    ndarray or ResidualOperator of shape (m, n)
    """
    if config is None:
        config = CorralConfig.from_options(**options)

    M = as_matrix(X, table=table)
    w = compute_weights(M, table=table)
    rw = w.row_w if row_w is None else normalize_weights(row_w, M.shape[0], "row")

    Z = var_stabilize(M, config.vst_mth)
    R = residuals(Z, rw, w.col_w, config.rtype)
    R = power_deflate(R, config.powdef_alpha)
    if config.smooth:
        R = trim_extremes(R, config.pct_trim)

    logger.debug(
        "preprocessed %s table%s: vst=%s rtype=%s -> %s",
        M.shape,
        "" if table is None else f" {table}",
        config.vst_mth.value,
        config.rtype.value,
        type(R).__name__,
    )
    return R


def hstack_matrices(blocks: List):
    """
    Stack preprocessed blocks side by side, in order.

    All ResidualOperators stay one implicit operator; any dense block makes
    the whole stack dense.
    """
    if not blocks:
        raise ValueError("nothing to stack")
    if all(isinstance(b, ResidualOperator) for b in blocks):
        return ResidualOperator.hstack(blocks)
    return np.hstack([_dense(b) for b in blocks])
