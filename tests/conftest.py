"""Pytest configuration for alphaclique tests.

This module provides synthetic LC-MS data shared by all tests: a regular scan
axis, Gaussian elution profiles and matching feature records. Scan times are
multiples of 0.5 so that RT bounds taken from the axis match exactly.
"""

import numpy as np
import pytest

from alphaclique.features import FeatureRecord
from alphaclique.xic import RawScanData


N_SCANS = 40
SCAN_STEP = 0.5


def gaussian_profile(times, apex, sigma, height):
    """Gaussian elution profile sampled at times."""
    return height * np.exp(-0.5 * ((times - apex) / sigma) ** 2)


def make_raw(times, compounds):
    """Raw scans with one data point per compound per scan.

    Args:
        times: Scan times
        compounds: List of (mz, apex, sigma, height) tuples

    Returns:
        RawScanData with data points sorted by m/z inside each scan
    """
    compounds = sorted(compounds)
    scans = []
    for t in times:
        mz = np.array([c[0] for c in compounds], dtype=np.float64)
        intensity = np.array(
            [gaussian_profile(t, c[1], c[2], c[3]) for c in compounds], dtype=np.float64
        )
        scans.append((mz, intensity))
    return RawScanData.from_scans(times, scans)


def make_feature(node_id, mz, rt, rt_min, rt_max, intensity, row_id=None, mz_width=0.005):
    """Feature record with a symmetric m/z window around mz."""
    return FeatureRecord(
        node_id=node_id,
        source_row_id=row_id if row_id is not None else 100 + node_id,
        mz=mz,
        mz_min=mz - mz_width,
        mz_max=mz + mz_width,
        rt=rt,
        rt_min=rt_min,
        rt_max=rt_max,
        intensity=intensity,
    )


@pytest.fixture
def raw_factory():
    """make_raw as a fixture."""
    return make_raw


@pytest.fixture
def feature_factory():
    """make_feature as a fixture."""
    return make_feature


@pytest.fixture
def scan_times():
    """Regular scan axis 0.0, 0.5, ..., 19.5."""
    return np.arange(N_SCANS) * SCAN_STEP


@pytest.fixture
def two_compound_raw(scan_times):
    """Two compounds, each with a co-eluting partner ion.

    Compound A elutes at 5.0 (m/z 300.0 and its 13C isotope 301.0034),
    compound B at 14.0 (m/z 450.0 and a sodium adduct 472.0).
    """
    return make_raw(scan_times, [
        (300.0, 5.0, 1.0, 1e6),
        (301.0034, 5.0, 1.0, 3e5),
        (450.0, 14.0, 1.2, 5e5),
        (472.0, 14.0, 1.2, 2e5),
    ])


@pytest.fixture
def two_compound_features():
    """Features for two_compound_raw; windows of A and B do not overlap."""
    return [
        make_feature(1, 300.0, 5.0, 2.0, 8.0, 1e6),
        make_feature(2, 301.0034, 5.0, 2.0, 8.0, 3e5),
        make_feature(3, 450.0, 14.0, 11.0, 17.0, 5e5),
        make_feature(4, 472.0, 14.0, 11.0, 17.0, 2e5),
    ]


@pytest.fixture
def feature_table():
    """Structured feature table matching two_compound_features."""
    dtype = [
        ('mz', 'f8'), ('mz_min', 'f8'), ('mz_max', 'f8'),
        ('rt', 'f8'), ('rt_min', 'f8'), ('rt_max', 'f8'),
        ('intensity', 'f8'), ('row_id', 'i8'),
    ]
    rows = [
        (300.0, 299.995, 300.005, 5.0, 2.0, 8.0, 1e6, 11),
        (301.0034, 300.9984, 301.0084, 5.0, 2.0, 8.0, 3e5, 12),
        (450.0, 449.995, 450.005, 14.0, 11.0, 17.0, 5e5, 13),
        (472.0, 471.995, 472.005, 14.0, 11.0, 17.0, 2e5, 14),
    ]
    return np.array(rows, dtype=dtype)


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
