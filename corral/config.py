# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Validated call configuration.

All string options are turned into enums and every combination is checked
once, when the config is built, so that nothing invalid reaches the
weight or residual code.
"""

from dataclasses import dataclass, fields
from enum import Enum
from numbers import Integral, Real
from typing import Optional

import numpy as np

from .errors import ConfigurationError


class Method(str, Enum):
    ITERATIVE = "iterative"
    EXACT = "exact"


class ResidualType(str, Enum):
    INDEXED = "indexed"
    STANDARDIZED = "standardized"
    HELLINGER = "hellinger"
    FREEMANTUKEY = "freemantukey"
    PEARSON = "pearson"


class VarianceStabilizer(str, Enum):
    NONE = "none"
    SQRT = "sqrt"
    FREEMANTUKEY = "freemantukey"
    ANSCOMBE = "anscombe"


# Residual types sharing the chi-square formula; the only ones that can be trimmed.
CHISQ_RESIDUALS = frozenset(
    {ResidualType.INDEXED, ResidualType.STANDARDIZED, ResidualType.PEARSON}
)


def _as_enum(enum_cls, value, option: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(repr(m.value) for m in enum_cls)
        raise ConfigurationError(
            f"{option}={value!r} is not one of {allowed}"
        ) from None


@dataclass(frozen=True)
class CorralConfig:
    """
    Options for `corral` / `corralm`.

    Attributes
    ----------
    method : Method
        SVD algorithm, ARPACK (`iterative`) or LAPACK (`exact`).
    rtype : ResidualType
        Residual transform applied after the variance-stabilizing transform.
    vst_mth : VarianceStabilizer
        Elementwise transform of the counts fed to the residual step.
    ncomp : int
        Number of components to keep.
    rw_contrib : ndarray or None
        Per-table contribution to shared row weights (multi-table only).
    powdef_alpha : float or None
        Power-deflation exponent in (0, 1]; None disables it.
    smooth : bool
        Winsorize the residuals at the `pct_trim` quantiles.
    pct_trim : float
        Fraction trimmed from each tail when `smooth` is set.
    seed : int
        Seed for the ARPACK start vector.
    """

    method: Method = Method.ITERATIVE
    rtype: ResidualType = ResidualType.INDEXED
    vst_mth: VarianceStabilizer = VarianceStabilizer.NONE
    ncomp: int = 30
    rw_contrib: Optional[np.ndarray] = None
    powdef_alpha: Optional[float] = None
    smooth: bool = False
    pct_trim: float = 0.01
    seed: int = 0

    def __post_init__(self):
        # frozen dataclass: normalize through object.__setattr__
        set_ = object.__setattr__
        set_(self, "method", _as_enum(Method, self.method, "method"))
        set_(self, "rtype", _as_enum(ResidualType, self.rtype, "rtype"))
        set_(self, "vst_mth", _as_enum(VarianceStabilizer, self.vst_mth, "vst_mth"))

        if isinstance(self.ncomp, bool) or not isinstance(self.ncomp, Integral):
            raise ConfigurationError(f"ncomp must be an integer, got {self.ncomp!r}")
        if self.ncomp < 1:
            raise ConfigurationError(f"ncomp must be positive, got {self.ncomp}")
        set_(self, "ncomp", int(self.ncomp))

        if self.powdef_alpha is not None:
            if not isinstance(self.powdef_alpha, Real) or not (
                0.0 < self.powdef_alpha <= 1.0
            ):
                raise ConfigurationError(
                    f"powdef_alpha must be in (0, 1], got {self.powdef_alpha!r}"
                )
            set_(self, "powdef_alpha", float(self.powdef_alpha))

        if not isinstance(self.pct_trim, Real) or not (0.0 <= self.pct_trim < 1.0):
            raise ConfigurationError(
                f"pct_trim must be in [0, 1), got {self.pct_trim!r}"
            )
        set_(self, "pct_trim", float(self.pct_trim))
        set_(self, "smooth", bool(self.smooth))
        if self.smooth and self.rtype not in CHISQ_RESIDUALS:
            raise ConfigurationError(
                f"smooth=True is not compatible with rtype={self.rtype.value!r}; "
                "use 'standardized', 'indexed' or 'pearson'"
            )

        if self.rw_contrib is not None:
            contrib = np.array(self.rw_contrib, dtype=float, copy=True).ravel()
            if contrib.size == 0:
                raise ConfigurationError("rw_contrib must not be empty")
            if not np.all(np.isfinite(contrib)) or np.any(contrib < 0):
                raise ConfigurationError(
                    f"rw_contrib entries must be finite and >= 0, got {contrib}"
                )
            contrib.setflags(write=False)
            set_(self, "rw_contrib", contrib)

        if isinstance(self.seed, bool) or not isinstance(self.seed, Integral):
            raise ConfigurationError(f"seed must be an integer, got {self.seed!r}")

    @classmethod
    def from_options(cls, **options) -> "CorralConfig":
        """Build a config from keyword options, rejecting unknown names."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"unknown option(s): {', '.join(unknown)}")
        return cls(**options)
