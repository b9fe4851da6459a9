# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Exception hierarchy.

Every error is raised while validating the call, before any decomposition
work starts. None of them are transient, so nothing here is retried.
"""


class CorralError(ValueError):
    """Base class for all caller-input errors."""


class ConfigurationError(CorralError):
    """Unknown option value or an incompatible combination of options."""


class DegenerateInputError(CorralError):
    """Zero total, zero marginal, negative or non-finite entries."""


class DimensionMismatchError(CorralError):
    """Tables (or weight vectors) are not aligned on the shared axis."""


class RankTooLargeError(CorralError):
    """Requested number of components exceeds what the solver can return."""


class ContributionLengthError(DimensionMismatchError, ConfigurationError):
    """`rw_contrib` does not have one entry per table."""
