"""Near-duplicate feature removal.

Feature detection sometimes splits one physical signal into two entries with
practically identical traces, m/z, RT and height. Left in place, such pairs
form spurious two-member cliques. This module finds them and removes the
lower-indexed member of every pair, keeping features and similarity matrix
aligned.

A pair (i, j), i < j, is a near-duplicate when
- similarity[i, j] > 0.99, and
- |x_i - x_j| / |x_i| is below its tolerance for x in (mz, rt, intensity).
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np
from numba import njit

from ..constants import (
    DEFAULT_INTENSITY_TOLERANCE,
    DEFAULT_MZ_TOLERANCE,
    DEFAULT_RT_TOLERANCE,
    DUPLICATE_SIMILARITY_THRESHOLD,
)
from ..features.records import FeatureRecord, features_to_arrays
from .similarity import SimilarityMatrix, find_similar_pairs, surviving_indices

logger = logging.getLogger(__name__)


@njit
def relative_difference(reference: float, other: float) -> float:
    """|reference - other| / |reference|, with 0/0 = 0 and x/0 = inf."""
    if reference == 0.0:
        if other == 0.0:
            return 0.0
        return np.inf
    return abs(reference - other) / abs(reference)


@njit
def find_duplicate_indices(
    matrix: np.ndarray,
    mz: np.ndarray,
    rt: np.ndarray,
    intensity: np.ndarray,
    mz_tolerance: float,
    rt_tolerance: float,
    intensity_tolerance: float,
    min_similarity: float,
) -> np.ndarray:
    """Indices of features to delete as near-duplicates.

    Returns
    -------
    np.ndarray (int64)
        Sorted, unique indices (the lower-indexed member of every
        near-duplicate pair)
    """
    first, second = find_similar_pairs(matrix, min_similarity)
    flagged = np.zeros(matrix.shape[0], dtype=np.bool_)

    for p in range(len(first)):
        i = first[p]
        j = second[p]

        if relative_difference(mz[i], mz[j]) >= mz_tolerance:
            continue
        if relative_difference(rt[i], rt[j]) >= rt_tolerance:
            continue
        if relative_difference(intensity[i], intensity[j]) >= intensity_tolerance:
            continue

        flagged[min(i, j)] = True

    return np.nonzero(flagged)[0].astype(np.int64)


@dataclass
class DuplicateFilterResult:
    """Outcome of one duplicate-filter pass."""

    features: List[FeatureRecord]
    matrix: SimilarityMatrix
    removed_indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    removed_features: List[FeatureRecord] = field(default_factory=list)

    @property
    def n_removed(self) -> int:
        return len(self.removed_features)


class DuplicateFilter:
    """Remove near-duplicate features from a feature list and its matrix.

    Examples
    --------
    >>> dup_filter = DuplicateFilter(mz_tolerance=5e-6, rt_tolerance=1e-4,
    ...                              intensity_tolerance=1e-4)
    >>> result = dup_filter.filter(matrix, features)
    >>> result.n_removed
    1
    """

    def __init__(
        self,
        mz_tolerance: float = DEFAULT_MZ_TOLERANCE,
        rt_tolerance: float = DEFAULT_RT_TOLERANCE,
        intensity_tolerance: float = DEFAULT_INTENSITY_TOLERANCE,
        min_similarity: float = DUPLICATE_SIMILARITY_THRESHOLD,
    ):
        for name, value in (
            ('mz_tolerance', mz_tolerance),
            ('rt_tolerance', rt_tolerance),
            ('intensity_tolerance', intensity_tolerance),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

        self.mz_tolerance = mz_tolerance
        self.rt_tolerance = rt_tolerance
        self.intensity_tolerance = intensity_tolerance
        self.min_similarity = min_similarity

    def find_duplicates(
        self,
        matrix: SimilarityMatrix,
        features: Sequence[FeatureRecord],
    ) -> np.ndarray:
        """Sorted indices of the features that filter() would remove."""
        if matrix.size != len(features):
            raise ValueError(
                f"Similarity matrix has {matrix.size} rows but there are {len(features)} features"
            )
        if len(features) == 0:
            return np.zeros(0, dtype=np.int64)

        columns = features_to_arrays(features)
        return find_duplicate_indices(
            matrix.values,
            columns['mz'], columns['rt'], columns['intensity'],
            self.mz_tolerance, self.rt_tolerance, self.intensity_tolerance,
            self.min_similarity,
        )

    def filter(
        self,
        matrix: SimilarityMatrix,
        features: Sequence[FeatureRecord],
    ) -> DuplicateFilterResult:
        """Remove near-duplicates from features and matrix in one projection.

        Returns
        -------
        DuplicateFilterResult
            Surviving features and matrix (the input matrix itself when
            nothing was removed), plus the removed indices and records
        """
        delete_indices = self.find_duplicates(matrix, features)

        if len(delete_indices) == 0:
            logger.info("No feature deleted")
            return DuplicateFilterResult(features=list(features), matrix=matrix)

        keep = surviving_indices(len(features), delete_indices)
        kept_features = [features[i] for i in keep]
        removed_features = [features[i] for i in delete_indices]

        filtered_matrix = SimilarityMatrix(matrix.values[np.ix_(keep, keep)])

        logger.info(f"{len(delete_indices):,} features deleted.")
        logger.debug(
            f"Removed source rows: {[f.source_row_id for f in removed_features]}"
        )

        return DuplicateFilterResult(
            features=kept_features,
            matrix=filtered_matrix,
            removed_indices=delete_indices,
            removed_features=removed_features,
        )
