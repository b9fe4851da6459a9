# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Multi-table correspondence analysis.

Several matrices that share their rows (same features, same order) are
preprocessed with the same scaling, stacked side by side and decomposed
once, so that every table's columns get embeddings in one latent space.
"""

import logging
import warnings
from dataclasses import replace
from typing import List, Mapping, Optional, Sequence, Tuple

from .ca import resolve_config
from .config import CorralConfig, ResidualType
from .decompose import check_rank, truncated_svd
from .errors import ContributionLengthError, DimensionMismatchError
from .preprocess import hstack_matrices, preprocess
from .result import ResultBundle, assemble_result
from .utils import matrix_shape
from .weights import combine_row_weights, compute_weights

logger = logging.getLogger(__name__)


def _tables(matrices) -> Tuple[List[str], List]:
    if isinstance(matrices, Mapping):
        names = [str(k) for k in matrices]
        mats = list(matrices.values())
    else:
        mats = list(matrices)
        names = [str(i) for i in range(len(mats))]
    if not mats:
        raise DimensionMismatchError("corralm needs at least one table")
    return names, mats


def batch_sizes(shapes: Sequence[Tuple[int, int]]) -> List[int]:
    """
    Column count of each table, in input order.

    Raises DimensionMismatchError if the tables do not all have the same
    number of rows.
    """
    nrow = shapes[0][0]
    for t, (m, _n) in enumerate(shapes):
        if m != nrow:
            raise DimensionMismatchError(
                f"table {t} has {m} rows but table 0 has {nrow}; "
                "tables must be aligned on their rows"
            )
    return [n for _m, n in shapes]


def corralm(matrices, config: Optional[CorralConfig] = None, **options) -> ResultBundle:
    """
    Multi-table correspondence analysis.

    Parameters
    ----------
    matrices : sequence of matrices, or mapping name -> matrix
        Tables aligned on their rows. Each is an array-like or a
        scipy.sparse matrix; none is modified.
    config : CorralConfig or None
        Validated options; alternatively pass them as keywords.
        With `rw_contrib` set, the tables' row weights are blended into one
        shared vector and `rtype` is forced to 'standardized'.

    Returns
    -------
    ResultBundle
        `v` holds the embeddings of all tables' columns, stacked in input
        order; `batch_sizes` / `batch_names` say which rows belong to which
        table (see `ResultBundle.table_embeddings`).
    """
    config = resolve_config(config, options)
    names, mats = _tables(matrices)
    shapes = [matrix_shape(X, table=t) for t, X in enumerate(mats)]
    sizes = batch_sizes(shapes)
    check_rank((shapes[0][0], sum(sizes)), config.ncomp, config.method)

    if config.rw_contrib is None:
        blocks = [preprocess(X, config, table=t) for t, X in enumerate(mats)]
        rtype = config.rtype
    else:
        contrib = config.rw_contrib
        if contrib.size != len(mats):
            raise ContributionLengthError(
                f"rw_contrib has {contrib.size} entries but there are {len(mats)} tables"
            )
        row_ws = [compute_weights(X, table=t).row_w for t, X in enumerate(mats)]
        shared = combine_row_weights(row_ws, contrib)

        rtype = ResidualType.STANDARDIZED
        if config.rtype is not rtype:
            msg = (
                f"rtype={config.rtype.value!r} switched to 'standardized' "
                "because rw_contrib shares row weights across tables"
            )
            logger.warning(msg)
            warnings.warn(msg, UserWarning, stacklevel=2)
        shared_config = replace(config, rtype=rtype)
        blocks = [
            preprocess(X, shared_config, row_w=shared, table=t)
            for t, X in enumerate(mats)
        ]

    R = hstack_matrices(blocks)
    logger.debug("corralm: %d tables stacked into %s", len(blocks), R.shape)
    fact = truncated_svd(R, config.ncomp, config.method, config.seed)
    return assemble_result(fact, config.method, rtype, sizes, names)
