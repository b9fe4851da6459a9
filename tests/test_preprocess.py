# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging

import numpy as np
import pytest
import scipy.sparse as sp

from corral.errors import ConfigurationError
from corral.preprocess import (
    ResidualOperator,
    hstack_matrices,
    power_deflate,
    preprocess,
    residuals,
    trim_extremes,
    var_stabilize,
)
from corral.weights import compute_weights

logger = logging.getLogger(__name__)


def sparse_counts(m, n, seed, density=0.3):
    """Sparse Poisson counts with no empty row or column."""
    rng = np.random.default_rng(seed)
    X = rng.poisson(4.0, size=(m, n)) * (rng.random((m, n)) < density)
    X[np.arange(m), np.arange(m) % n] += 1
    X[np.arange(n) % m, np.arange(n)] += 1
    return X.astype(float)


def chisq(X):
    """Reference standardized residuals, written out longhand."""
    N = X.sum()
    P = X / N
    r = P.sum(axis=1)
    c = P.sum(axis=0)
    E = np.outer(r, c)
    return (P - E) / np.sqrt(E)


# ----- variance-stabilizing transforms -----


def test_vst_values():
    X = np.array([[0.0, 1.0], [4.0, 9.0]])
    np.testing.assert_array_equal(var_stabilize(X, "none"), X)
    np.testing.assert_allclose(var_stabilize(X, "sqrt"), [[0, 1], [2, 3]])
    np.testing.assert_allclose(var_stabilize(X, "anscombe"), 2 * np.sqrt(X + 3 / 8))
    np.testing.assert_allclose(
        var_stabilize(X, "freemantukey"), np.sqrt(X) + np.sqrt(X + 1)
    )


def test_vst_sparsity():
    X = sp.csr_matrix(sparse_counts(8, 6, seed=0))
    assert sp.issparse(var_stabilize(X, "none"))
    assert sp.issparse(var_stabilize(X, "sqrt"))
    # both map 0 to a non-zero value
    assert isinstance(var_stabilize(X, "anscombe"), np.ndarray)
    assert isinstance(var_stabilize(X, "freemantukey"), np.ndarray)


# ----- residual transforms -----


def test_chisq_residual_types_are_identical():
    X = sparse_counts(10, 7, seed=1)
    w = compute_weights(X)
    R = residuals(X, w.row_w, w.col_w, "standardized")
    np.testing.assert_allclose(R, chisq(X), atol=1e-12)
    np.testing.assert_array_equal(residuals(X, w.row_w, w.col_w, "indexed"), R)
    np.testing.assert_array_equal(residuals(X, w.row_w, w.col_w, "pearson"), R)


def test_chisq_residuals_are_centered():
    # with the matrix's own weights, sum_j sqrt(c_j) r_ij = 0 for every row
    X = sparse_counts(9, 11, seed=2)
    w = compute_weights(X)
    R = residuals(X, w.row_w, w.col_w, "standardized")
    np.testing.assert_allclose(R @ np.sqrt(w.col_w), 0.0, atol=1e-12)
    np.testing.assert_allclose(np.sqrt(w.row_w) @ R, 0.0, atol=1e-12)


def test_freemantukey_residuals():
    X = sparse_counts(6, 5, seed=3)
    w = compute_weights(X)
    N = X.sum()
    P = X / N
    E = np.outer(w.row_w, w.col_w)
    expected = np.sqrt(P) + np.sqrt(P + 1 / N) - np.sqrt(4 * E + 1 / N)
    np.testing.assert_allclose(residuals(X, w.row_w, w.col_w, "freemantukey"), expected)


def test_hellinger_residuals():
    X = sparse_counts(6, 5, seed=4)
    w = compute_weights(X)
    P = X / X.sum()
    # sqrt(r_i) * (row-profile Hellinger coordinate - sqrt(c_j))
    profile = np.sqrt(P / w.row_w[:, None]) - np.sqrt(w.col_w)[None, :]
    expected = np.sqrt(w.row_w)[:, None] * profile
    np.testing.assert_allclose(residuals(X, w.row_w, w.col_w, "hellinger"), expected)


@pytest.mark.parametrize("rtype", ["standardized", "indexed", "pearson", "hellinger"])
def test_sparse_residual_stays_implicit(rtype):
    X = sparse_counts(12, 9, seed=5)
    w = compute_weights(X)
    dense = residuals(X, w.row_w, w.col_w, rtype)
    op = residuals(sp.csr_matrix(X), w.row_w, w.col_w, rtype)

    assert isinstance(op, ResidualOperator)
    assert op.shape == X.shape
    np.testing.assert_allclose(op.toarray(), dense, atol=1e-13)
    assert np.isclose(op.squared_norm(), np.sum(dense**2), rtol=1e-10)

    rng = np.random.default_rng(6)
    x = rng.standard_normal(X.shape[1])
    y = rng.standard_normal(X.shape[0])
    np.testing.assert_allclose(op.matvec(x), dense @ x, atol=1e-12)
    np.testing.assert_allclose(op.rmatvec(y), dense.T @ y, atol=1e-12)
    Z = rng.standard_normal((X.shape[1], 3))
    np.testing.assert_allclose(op.matmat(Z), dense @ Z, atol=1e-12)


def test_sparse_freemantukey_is_dense():
    X = sparse_counts(5, 4, seed=7)
    w = compute_weights(X)
    R = residuals(sp.csr_matrix(X), w.row_w, w.col_w, "freemantukey")
    assert isinstance(R, np.ndarray)
    np.testing.assert_allclose(R, residuals(X, w.row_w, w.col_w, "freemantukey"))


def test_operator_hstack_matches_dense():
    A = sparse_counts(8, 5, seed=8)
    B = sparse_counts(8, 3, seed=9)
    blocks = [preprocess(sp.csr_matrix(M)) for M in (A, B)]
    stacked = hstack_matrices(blocks)

    assert isinstance(stacked, ResidualOperator)
    expected = np.hstack([chisq(A), chisq(B)])
    np.testing.assert_allclose(stacked.toarray(), expected, atol=1e-13)
    assert np.isclose(stacked.squared_norm(), np.sum(expected**2), rtol=1e-10)


def test_hstack_mixed_blocks_is_dense():
    A = sparse_counts(4, 3, seed=10)
    blocks = [preprocess(sp.csr_matrix(A)), chisq(A)]
    stacked = hstack_matrices(blocks)
    assert isinstance(stacked, np.ndarray)
    assert stacked.shape == (4, 6)


# ----- power deflation / trimming -----


def test_power_deflation_noop():
    R = chisq(sparse_counts(7, 6, seed=11))
    np.testing.assert_array_equal(power_deflate(R, None), R)
    np.testing.assert_array_equal(power_deflate(R, 1.0), R)


def test_power_deflation_compresses_magnitudes():
    R = np.array([[-4.0, -0.25], [0.0, 9.0]])
    D = power_deflate(R, 0.5)
    np.testing.assert_allclose(D, [[-2.0, -0.5], [0.0, 3.0]])
    assert np.all(np.sign(D) == np.sign(R))


def test_trim_noop():
    R = chisq(sparse_counts(7, 6, seed=12))
    np.testing.assert_array_equal(trim_extremes(R, 0.0), R)


def test_trim_clamps_to_quantiles():
    R = np.arange(100, dtype=float).reshape(10, 10)
    T = trim_extremes(R, 0.1)
    lo, hi = np.quantile(R, [0.1, 0.9])
    assert T.min() == lo
    assert T.max() == hi
    inside = (R >= lo) & (R <= hi)
    np.testing.assert_array_equal(T[inside], R[inside])
    assert T.shape == R.shape


# ----- full pipeline -----


def test_preprocess_default_is_chisq():
    X = sparse_counts(10, 8, seed=13)
    np.testing.assert_allclose(preprocess(X), chisq(X), atol=1e-12)


def test_preprocess_smooth_false_ignores_pct_trim():
    X = sparse_counts(10, 8, seed=14)
    np.testing.assert_array_equal(
        preprocess(X, smooth=False, pct_trim=0.2), preprocess(X)
    )


def test_preprocess_vst_keeps_raw_weights():
    X = sparse_counts(9, 7, seed=15)
    w = compute_weights(X)
    expected = residuals(np.sqrt(X), w.row_w, w.col_w, "standardized")
    np.testing.assert_allclose(preprocess(X, vst_mth="sqrt", rtype="standardized"), expected)


def test_preprocess_shared_row_weights():
    X = sparse_counts(6, 5, seed=16)
    rw = np.arange(1, 7, dtype=float)
    w = compute_weights(X)
    expected = residuals(X, rw / rw.sum(), w.col_w, "standardized")
    np.testing.assert_allclose(preprocess(X, row_w=rw, rtype="standardized"), expected)
    op = preprocess(sp.csr_matrix(X), row_w=rw, rtype="standardized")
    np.testing.assert_allclose(op.toarray(), expected, atol=1e-13)


def test_preprocess_powdef_and_smooth_on_sparse():
    X = sp.csr_matrix(sparse_counts(10, 10, seed=17))
    R = preprocess(X, powdef_alpha=0.5, smooth=True, pct_trim=0.05)
    assert isinstance(R, np.ndarray)
    ref = trim_extremes(power_deflate(chisq(X.toarray()), 0.5), 0.05)
    np.testing.assert_allclose(R, ref, atol=1e-6)


@pytest.mark.parametrize("rtype", ["hellinger", "freemantukey"])
def test_smooth_incompatible_rtypes(rtype):
    with pytest.raises(ConfigurationError):
        preprocess(sparse_counts(4, 4, seed=18), rtype=rtype, smooth=True)


def test_preprocess_does_not_mutate_input():
    X = sparse_counts(8, 8, seed=19)
    S = sp.csr_matrix(X)
    before, before_data = X.copy(), S.data.copy()
    preprocess(X, vst_mth="anscombe", powdef_alpha=0.7, smooth=True)
    preprocess(S, vst_mth="sqrt")
    np.testing.assert_array_equal(X, before)
    np.testing.assert_array_equal(S.data, before_data)
    logger.debug("inputs unchanged after preprocessing")


def test_preprocess_rejects_column_weight_override():
    # only row weights can be shared; column weights always come from the table
    with pytest.raises(ConfigurationError, match="col_w"):
        preprocess(sparse_counts(4, 3, seed=20), col_w=np.ones(3))
