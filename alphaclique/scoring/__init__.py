"""Similarity scoring and near-duplicate filtering of feature traces.

This module provides:
- Cosine similarity between traces (scalar and full pairwise matrix)
- A SimilarityMatrix type whose rows stay aligned with the feature list
- Near-duplicate detection from similarity plus relative m/z, RT and
  intensity agreement

Key Features
------------
- Numba-accelerated, exactly symmetric pairwise matrix
- Zero traces give similarity 0.0, never NaN
- Row/column removal through a single surviving-index projection

Examples
--------
>>> from alphaclique.scoring import SimilarityMatrix, DuplicateFilter
>>>
>>> matrix = SimilarityMatrix.compute(traces)
>>> result = DuplicateFilter().filter(matrix, features)
>>> print(f"{result.n_removed} near-duplicates removed")
"""

from .similarity import (
    SimilarityMatrix,
    cosine_similarity,
    cosine_similarity_matrix,
    find_similar_pairs,
    surviving_indices,
)
from .duplicates import (
    DuplicateFilter,
    DuplicateFilterResult,
    find_duplicate_indices,
    relative_difference,
)

__all__ = [
    # Similarity
    "SimilarityMatrix",
    "cosine_similarity",
    "cosine_similarity_matrix",
    "find_similar_pairs",
    "surviving_indices",
    # Duplicate filtering
    "DuplicateFilter",
    "DuplicateFilterResult",
    "find_duplicate_indices",
    "relative_difference",
]
