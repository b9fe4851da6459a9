#!/usr/bin/python3
# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Time `iterative` (ARPACK) against `exact` (LAPACK) on sparse count tables.

    python -m corral.benchmark_svd
"""

import time

import numpy as np
import pandas as pd
import scipy.sparse as sp

from corral import corral

REPEATS = 3  # best of 3 runs
NCOMP = 10
sizes = [(500, 300), (2000, 1000), (5000, 2000)]
density = 0.05


def wall(f, *args, **kwargs):
    t0 = time.perf_counter()
    f(*args, **kwargs)
    return time.perf_counter() - t0


def random_counts(m, n, rng):
    X = sp.random(m, n, density=density, format="csr", random_state=rng)
    X.data = rng.poisson(5.0, size=X.data.size) + 1.0
    # every row and column needs a non-zero entry
    X = X + sp.csr_matrix(
        (np.ones(m), (np.arange(m), np.arange(m) % n)), shape=(m, n)
    )
    X = X + sp.csr_matrix(
        (np.ones(n), (np.arange(n) % m, np.arange(n))), shape=(m, n)
    )
    return X.tocsr()


def main():
    rng = np.random.default_rng(0)
    records = []
    for m, n in sizes:
        X = random_counts(m, n, rng)

        t_exact = min(
            wall(corral, X, method="exact", ncomp=NCOMP) for _ in range(REPEATS)
        )
        t_irl = min(
            wall(corral, X, method="iterative", ncomp=NCOMP) for _ in range(REPEATS)
        )
        d_exact = corral(X, method="exact", ncomp=NCOMP).d
        d_irl = corral(X, method="iterative", ncomp=NCOMP).d
        rel = np.max(np.abs(d_exact - d_irl) / d_exact)
        records.append((f"{m}x{n}", X.nnz, t_exact, t_irl, t_exact / t_irl, rel))

    df = pd.DataFrame(
        records,
        columns=["size", "nnz", "exact_sec", "iterative_sec", "speedup", "max_rel_err_d"],
    )
    print(df.to_string(index=False))


if __name__ == "__main__":
    main()
