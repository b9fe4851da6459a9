# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from typing import Optional

from .config import CorralConfig
from .decompose import check_rank, truncated_svd
from .errors import ConfigurationError
from .preprocess import preprocess
from .result import ResultBundle, assemble_result
from .utils import matrix_shape

logger = logging.getLogger(__name__)


def resolve_config(config: Optional[CorralConfig], options: dict) -> CorralConfig:
    if config is None:
        return CorralConfig.from_options(**options)
    if options:
        raise ConfigurationError(
            f"pass either a config or keyword options, not both: {sorted(options)}"
        )
    return config


def corral(X, config: Optional[CorralConfig] = None, **options) -> ResultBundle:
    """
    Correspondence analysis of a single non-negative matrix.

    Parameters
    ----------
    X : (m, n) array-like or scipy.sparse matrix
        Counts (or other non-negative data); not modified.
    config : CorralConfig or None
        Validated options; alternatively pass them as keywords
        (method, rtype, vst_mth, ncomp, powdef_alpha, smooth, pct_trim, seed).

    Returns
    -------
    ResultBundle
        u (m, ncomp), d (ncomp,), v (n, ncomp), eigsum and pct_var_exp.

    Example
    -------
    >>> import numpy as np, corral
    >>> X = np.random.default_rng(0).poisson(3.0, size=(40, 25))
    >>> res = corral.corral(X, ncomp=5)
    >>> res.v.shape
    (25, 5)
    """
    config = resolve_config(config, options)
    if config.rw_contrib is not None:
        raise ConfigurationError("rw_contrib only applies to multi-table input (corralm)")

    shape = matrix_shape(X)
    check_rank(shape, config.ncomp, config.method)

    R = preprocess(X, config)
    fact = truncated_svd(R, config.ncomp, config.method, config.seed)
    logger.debug("corral: %s -> %d components", shape, fact.d.size)
    return assemble_result(fact, config.method, config.rtype)
