"""Tests for near-duplicate feature removal.

Tests:
- Relative difference helper (including zero references)
- Candidate detection (similarity threshold, m/z, RT and intensity tolerances)
- Consistent removal from feature list and similarity matrix
- Idempotence and the no-op outcome
"""

import logging

import numpy as np
import pytest

from alphaclique.scoring import (
    DuplicateFilter,
    SimilarityMatrix,
    find_duplicate_indices,
    relative_difference,
)
from alphaclique.xic import TraceBuilder


def pair_matrix(similarity, n=2):
    """n x n identity with similarity between features 0 and 1."""
    values = np.eye(n)
    values[0, 1] = values[1, 0] = similarity
    return SimilarityMatrix(values)


class TestRelativeDifference:
    """Test |a - b| / |a|."""

    def test_basic(self):
        assert relative_difference(100.0, 99.0) == pytest.approx(0.01)

    def test_symmetric_sign(self):
        """Larger second value counts the same as a smaller one."""
        assert relative_difference(100.0, 101.0) == pytest.approx(0.01)

    def test_zero_reference(self):
        assert relative_difference(0.0, 0.0) == 0.0
        assert relative_difference(0.0, 1.0) == np.inf


class TestFindDuplicateIndices:
    """Test the Numba kernel."""

    def test_identical_pair(self):
        matrix = pair_matrix(1.0).values
        values = np.array([300.0, 300.0])

        indices = find_duplicate_indices(
            matrix, values, np.array([5.0, 5.0]), np.array([1e6, 1e6]),
            5e-6, 1e-4, 1e-4, 0.99,
        )

        np.testing.assert_array_equal(indices, [0])

    def test_sorted_and_unique(self):
        """Feature 0 pairs with 1 and 2; it is listed once."""
        matrix = np.ones((3, 3))
        same = np.array([300.0, 300.0, 300.0])

        indices = find_duplicate_indices(
            matrix, same, same, same, 5e-6, 1e-4, 1e-4, 0.99
        )

        np.testing.assert_array_equal(indices, [0, 1])


class TestDuplicateFilter:
    """Test DuplicateFilter.filter()."""

    def test_removes_lower_indexed_member(self, feature_factory):
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.0, 2.0, 8.0, 1e6),
        ]

        result = DuplicateFilter().filter(pair_matrix(1.0), features)

        assert result.n_removed == 1
        assert [f.node_id for f in result.features] == [2]
        assert [f.node_id for f in result.removed_features] == [1]
        np.testing.assert_array_equal(result.removed_indices, [0])
        assert result.matrix.size == 1

    def test_similarity_not_above_threshold(self, feature_factory):
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.0, 2.0, 8.0, 1e6),
        ]

        result = DuplicateFilter().filter(pair_matrix(0.99), features)

        assert result.n_removed == 0

    def test_mz_outside_tolerance(self, feature_factory):
        # 10 ppm apart, tolerance is 5e-6
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.003, 5.0, 2.0, 8.0, 1e6),
        ]

        result = DuplicateFilter().filter(pair_matrix(1.0), features)

        assert result.n_removed == 0

    def test_rt_outside_tolerance(self, feature_factory):
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.01, 2.0, 8.0, 1e6),
        ]

        result = DuplicateFilter().filter(pair_matrix(1.0), features)

        assert result.n_removed == 0

    def test_higher_intensity_partner_is_not_duplicate(self, feature_factory):
        """A partner at twice the height is a different feature."""
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.0, 2.0, 8.0, 2e6),
        ]

        result = DuplicateFilter().filter(pair_matrix(1.0), features)

        assert result.n_removed == 0

    def test_custom_tolerances(self, feature_factory):
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.003, 5.01, 2.0, 8.0, 1.05e6),
        ]
        dup_filter = DuplicateFilter(mz_tolerance=1e-4, rt_tolerance=1e-2, intensity_tolerance=0.1)

        result = dup_filter.filter(pair_matrix(1.0), features)

        assert result.n_removed == 1

    def test_matrix_stays_aligned(self, feature_factory):
        """Removing features 0 and 2 of 5 keeps rows/columns 1, 3, 4."""
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(3, 450.0, 9.0, 7.0, 11.0, 5e5),
            feature_factory(4, 450.0, 9.0, 7.0, 11.0, 5e5),
            feature_factory(5, 600.0, 12.0, 10.0, 14.0, 1e5),
        ]
        values = np.array([
            [1.0, 1.0, 0.1, 0.2, 0.3],
            [1.0, 1.0, 0.4, 0.5, 0.6],
            [0.1, 0.4, 1.0, 1.0, 0.7],
            [0.2, 0.5, 1.0, 1.0, 0.8],
            [0.3, 0.6, 0.7, 0.8, 1.0],
        ])

        result = DuplicateFilter().filter(SimilarityMatrix(values), features)

        np.testing.assert_array_equal(result.removed_indices, [0, 2])
        assert [f.node_id for f in result.features] == [2, 4, 5]
        expected = values[np.ix_([1, 3, 4], [1, 3, 4])]
        np.testing.assert_array_equal(result.matrix.values, expected)
        assert result.matrix.size == len(result.features)

    def test_no_op_returns_inputs(self, feature_factory, caplog):
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 450.0, 9.0, 7.0, 11.0, 5e5),
        ]
        matrix = pair_matrix(0.1)

        with caplog.at_level(logging.INFO):
            result = DuplicateFilter().filter(matrix, features)

        assert result.n_removed == 0
        assert result.matrix is matrix
        assert result.features == features
        assert len(result.removed_indices) == 0
        assert "No feature deleted" in caplog.text

    def test_idempotent(self, feature_factory):
        features = [
            feature_factory(i + 1, 300.0, 5.0, 2.0, 8.0, 1e6) for i in range(4)
        ]
        dup_filter = DuplicateFilter()

        first = dup_filter.filter(SimilarityMatrix(np.ones((4, 4))), features)
        second = dup_filter.filter(first.matrix, first.features)

        assert first.n_removed == 3
        assert second.n_removed == 0
        assert [f.node_id for f in second.features] == [4]

    def test_idempotent_on_real_traces(self, raw_factory, feature_factory, scan_times):
        raw = raw_factory(scan_times, [(300.0, 5.0, 1.0, 1e6), (450.0, 12.0, 1.0, 4e5)])
        features = [
            feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(2, 300.0, 5.0, 2.0, 8.0, 1e6),
            feature_factory(3, 450.0, 12.0, 9.0, 15.0, 4e5),
        ]
        matrix = SimilarityMatrix.compute(TraceBuilder().build_traces(raw, features))
        dup_filter = DuplicateFilter()

        first = dup_filter.filter(matrix, features)
        second = dup_filter.filter(first.matrix, first.features)

        assert first.n_removed == 1
        assert second.n_removed == 0

    def test_size_mismatch(self, feature_factory):
        features = [feature_factory(1, 300.0, 5.0, 2.0, 8.0, 1e6)]
        with pytest.raises(ValueError):
            DuplicateFilter().filter(pair_matrix(1.0), features)

    def test_negative_tolerance(self):
        with pytest.raises(ValueError):
            DuplicateFilter(mz_tolerance=-1.0)

    def test_empty(self):
        result = DuplicateFilter().filter(SimilarityMatrix(np.zeros((0, 0))), [])
        assert result.n_removed == 0
        assert result.features == []
