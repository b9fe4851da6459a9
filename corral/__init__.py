# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
corral
======

Correspondence analysis for non-negative (count) matrices, and a
multi-table extension that embeds several row-aligned matrices in one
shared latent space.

Public API
~~~~~~~~~~
- Analyses
    - `corral` (one matrix), `corralm` (list or mapping of matrices)
- Pipeline steps
    - `compute_weights`, `combine_row_weights`
    - `preprocess`, `var_stabilize`, `residuals`,
      `power_deflate`, `trim_extremes`
    - `truncated_svd`, `check_rank`
- Results / metrics
    - `ResultBundle`, `pct_var_explained`, `scaled_variance`
- Configuration and errors
    - `CorralConfig`, `Method`, `ResidualType`, `VarianceStabilizer`
    - `CorralError` and subclasses

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, corral
>>> rng = np.random.default_rng(0)
>>> tables = [rng.poisson(2.0, size=(30, 20)), rng.poisson(2.0, size=(30, 15))]
>>> res = corral.corralm(tables, ncomp=4, rw_contrib=[1, 1])
>>> res.v.shape, res.batch_sizes.tolist()
((35, 4), [20, 15])
"""

from importlib.metadata import version as _pkg_version

from .ca import corral
from .config import CorralConfig, Method, ResidualType, VarianceStabilizer
from .decompose import Factorization, check_rank, truncated_svd
from .errors import (
    ConfigurationError,
    ContributionLengthError,
    CorralError,
    DegenerateInputError,
    DimensionMismatchError,
    RankTooLargeError,
)
from .metrics import labels_from_sizes, scaled_variance
from .multitable import batch_sizes, corralm
from .preprocess import (
    ResidualOperator,
    power_deflate,
    preprocess,
    residuals,
    trim_extremes,
    var_stabilize,
)
from .result import ResultBundle, assemble_result, pct_var_explained
from .weights import Weights, combine_row_weights, compute_weights

__all__ = [
    "corral",
    "corralm",
    "batch_sizes",
    "CorralConfig",
    "Method",
    "ResidualType",
    "VarianceStabilizer",
    "Weights",
    "compute_weights",
    "combine_row_weights",
    "ResidualOperator",
    "var_stabilize",
    "residuals",
    "power_deflate",
    "trim_extremes",
    "preprocess",
    "Factorization",
    "check_rank",
    "truncated_svd",
    "ResultBundle",
    "assemble_result",
    "pct_var_explained",
    "scaled_variance",
    "labels_from_sizes",
    "CorralError",
    "ConfigurationError",
    "DegenerateInputError",
    "DimensionMismatchError",
    "RankTooLargeError",
    "ContributionLengthError",
]

# ---------------------------------------------------------------------
# Version string (helps "pip show corral-ca", Sphinx, etc.)
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version("corral-ca")
except Exception:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Library logging stays silent unless the application configures it.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
