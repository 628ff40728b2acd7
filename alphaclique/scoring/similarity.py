"""Cosine similarity between feature traces.

Features that originate from the same compound co-elute, so their traces have
the same shape even when their heights differ by orders of magnitude. Cosine
similarity compares shape only:

    similarity = dot(v1, v2) / (||v1|| * ||v2||)

An all-zero trace has no shape; its similarity to anything (itself included)
is defined as 0.0 so that NaN never enters the matrix.

Performance
-----------
- Norms computed once per trace
- Each unordered pair computed once and mirrored, so the matrix is exactly
  symmetric
- Rows processed in parallel with Numba

Examples
--------
>>> import numpy as np
>>> from alphaclique.scoring import SimilarityMatrix
>>>
>>> traces = np.array([
...     [0.0, 10.0, 100.0, 50.0, 5.0],
...     [0.0, 20.0, 200.0, 100.0, 10.0],  # Same shape, 2x intensity
...     [100.0, 50.0, 10.0, 0.0, 0.0],   # Different elution
... ])
>>> matrix = SimilarityMatrix.compute(traces)
>>> round(matrix[0, 1], 3)
1.0
"""

from __future__ import annotations

import numba as nb
import numpy as np
from numba import njit


@njit
def cosine_similarity(profile1: np.ndarray, profile2: np.ndarray) -> float:
    """Calculate cosine similarity between two traces.

    Parameters
    ----------
    profile1 : np.ndarray
        First intensity trace (1D array)
    profile2 : np.ndarray
        Second intensity trace (1D array, same length as profile1)

    Returns
    -------
    float
        Cosine similarity in [-1, 1]; [0, 1] for non-negative traces.
        0.0 if either trace is all zeros.

    Examples
    --------
    >>> profile1 = np.array([10.0, 100.0, 50.0])
    >>> profile2 = np.array([20.0, 200.0, 100.0])
    >>> print(f"{cosine_similarity(profile1, profile2):.3f}")
    1.000
    """
    assert len(profile1) == len(profile2), "Profiles must have same length"

    dot_product = 0.0
    norm1 = 0.0
    norm2 = 0.0

    for i in range(len(profile1)):
        dot_product += profile1[i] * profile2[i]
        norm1 += profile1[i] * profile1[i]
        norm2 += profile2[i] * profile2[i]

    # Handle zero vectors
    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0

    similarity = dot_product / (np.sqrt(norm1) * np.sqrt(norm2))

    return max(-1.0, min(1.0, similarity))


@nb.njit(parallel=True)
def cosine_similarity_matrix(traces: np.ndarray) -> np.ndarray:
    """Pairwise cosine similarity between all rows of a trace matrix.

    Parameters
    ----------
    traces : np.ndarray (float64)
        Trace matrix of shape (n_features, n_scans)

    Returns
    -------
    np.ndarray (float64)
        Symmetric matrix of shape (n_features, n_features). Diagonal is 1.0
        for non-zero traces; rows and columns of zero traces are all 0.0.
    """
    n_features, n_scans = traces.shape

    norms = np.zeros(n_features, dtype=np.float64)
    for i in range(n_features):
        acc = 0.0
        for k in range(n_scans):
            acc += traces[i, k] * traces[i, k]
        norms[i] = np.sqrt(acc)

    matrix = np.zeros((n_features, n_features), dtype=np.float64)

    # Row i writes (i, j) and (j, i) for j > i only: no two rows touch the same cell
    for i in nb.prange(n_features):
        if norms[i] == 0.0:
            continue

        matrix[i, i] = 1.0

        for j in range(i + 1, n_features):
            if norms[j] == 0.0:
                continue

            dot_product = 0.0
            for k in range(n_scans):
                dot_product += traces[i, k] * traces[j, k]

            similarity = dot_product / (norms[i] * norms[j])
            similarity = max(-1.0, min(1.0, similarity))

            matrix[i, j] = similarity
            matrix[j, i] = similarity

    return matrix


@njit
def find_similar_pairs(matrix: np.ndarray, min_similarity: float):
    """Upper-triangle pairs (i < j) with matrix[i, j] > min_similarity.

    Returns
    -------
    first : np.ndarray (int64)
        Row index i of each pair, ascending
    second : np.ndarray (int64)
        Column index j of each pair
    """
    n = matrix.shape[0]

    n_pairs = 0
    for i in range(n):
        for j in range(i + 1, n):
            if matrix[i, j] > min_similarity:
                n_pairs += 1

    first = np.empty(n_pairs, dtype=np.int64)
    second = np.empty(n_pairs, dtype=np.int64)

    p = 0
    for i in range(n):
        for j in range(i + 1, n):
            if matrix[i, j] > min_similarity:
                first[p] = i
                second[p] = j
                p += 1

    return first, second


class SimilarityMatrix:
    """Square, symmetric cosine-similarity matrix over the working features.

    Row and column ``i`` always belong to the feature at position ``i`` of the
    working feature sequence. Removing features goes through :meth:`remove`,
    which projects both axes through one list of surviving indices.
    """

    def __init__(self, values: np.ndarray):
        values = np.ascontiguousarray(values, dtype=np.float64)
        if values.ndim != 2 or values.shape[0] != values.shape[1]:
            raise ValueError(f"Similarity matrix must be square, got shape {values.shape}")
        self._values = values

    @classmethod
    def compute(cls, traces: np.ndarray) -> 'SimilarityMatrix':
        traces = np.ascontiguousarray(traces, dtype=np.float64)
        if traces.ndim != 2:
            raise ValueError(f"Traces must be a 2D array, got {traces.ndim}D")
        return cls(cosine_similarity_matrix(traces))

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def size(self) -> int:
        return self._values.shape[0]

    def __len__(self) -> int:
        return self.size

    def __getitem__(self, key):
        return self._values[key]

    def is_symmetric(self, atol: float = 0.0) -> bool:
        return bool(np.allclose(self._values, self._values.T, rtol=0.0, atol=atol))

    def upper_pairs(self, min_similarity: float):
        """(first, second) index arrays of pairs i < j above min_similarity."""
        return find_similar_pairs(self._values, min_similarity)

    def remove(self, indices) -> 'SimilarityMatrix':
        """New matrix without the given rows and columns.

        Surviving entries keep their relative order.
        """
        keep = surviving_indices(self.size, indices)
        return SimilarityMatrix(self._values[np.ix_(keep, keep)])


def surviving_indices(n: int, removed) -> np.ndarray:
    """Ascending indices in range(n) that are not in removed."""
    mask = np.ones(n, dtype=bool)
    removed = np.asarray(removed, dtype=np.int64)
    if removed.size:
        if removed.min() < 0 or removed.max() >= n:
            raise ValueError(f"Indices to remove must lie in [0, {n}), got {removed.tolist()}")
        mask[removed] = False
    return np.flatnonzero(mask)
