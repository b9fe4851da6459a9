# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from typing import Sequence, Tuple

import numpy as np

from .errors import DegenerateInputError, DimensionMismatchError
from .utils import EPS


def labels_from_sizes(batch_sizes: Sequence[int]) -> np.ndarray:
    """[2, 3] -> [0, 0, 1, 1, 1]"""
    sizes = np.asarray(batch_sizes, dtype=int)
    return np.repeat(np.arange(sizes.size), sizes)


def scaled_variance(embedding: np.ndarray, labels) -> Tuple[np.ndarray, np.ndarray]:
    """
    Within-batch variance of each dimension relative to its overall variance.

    A value near 1 means the batch is spread like the whole embedding on
    that dimension; values far below 1 flag a batch that sits in its own
    corner, i.e. poor integration.

    Parameters
    ----------
    embedding : (n_obs, k) ndarray
        e.g. `ResultBundle.v`.
    labels : (n_obs,) array-like
        Batch of each observation, e.g. `labels_from_sizes(res.batch_sizes)`.

    Returns
    -------
    scaled : (n_batches, k) ndarray
    batches : (n_batches,) ndarray
        Batch labels in the row order of `scaled`.
    """
    E = np.asarray(embedding, dtype=float)
    if E.ndim == 1:
        E = E[:, None]
    labels = np.asarray(labels).ravel()
    if labels.shape[0] != E.shape[0]:
        raise DimensionMismatchError(
            f"{labels.shape[0]} labels for an embedding with {E.shape[0]} rows"
        )

    overall = E.var(axis=0, ddof=1)
    flat = np.flatnonzero(overall <= EPS)
    if flat.size:
        raise DegenerateInputError(f"dimension(s) {flat.tolist()} have zero variance")

    batches, inverse, counts = np.unique(labels, return_inverse=True, return_counts=True)
    if np.any(counts < 2):
        small = batches[counts < 2].tolist()
        raise DegenerateInputError(f"batch(es) {small} have fewer than 2 observations")

    scaled = np.vstack(
        [E[inverse == b].var(axis=0, ddof=1) / overall for b in range(batches.size)]
    )
    return scaled, batches
