"""XIC (trace) extraction for detected features.

This module rebuilds one extracted ion chromatogram per feature on the shared
scan axis of a raw file. Scans are flattened once into a wide format
(concatenated m/z and intensity arrays plus per-scan offsets) so that the
extraction kernel only touches contiguous arrays:
1. Binary search of each feature's RT bounds on the scan time axis
2. Per-scan mean intensity of data points inside the feature's m/z range
3. Parallel processing of all features with Numba

Window bounds are matched to the nearest scan time within a tolerance rather
than by exact float equality. Features whose bounds cannot be matched get an
all-zero trace instead of aborting the run.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple, runtime_checkable

import numba as nb
import numpy as np

from ..constants import DEFAULT_RT_MATCH_TOLERANCE, NO_SIGNAL_INTENSITY
from ..features.records import FeatureRecord, features_to_arrays

logger = logging.getLogger(__name__)


@runtime_checkable
class RawDataAccessor(Protocol):
    """Read-only view of one raw file's scans."""

    def get_scan_times(self) -> Sequence[float]:
        """Ordered retention time of every scan."""
        ...

    def get_scan_data_points(self, scan_index: int) -> Sequence[Tuple[float, float]]:
        """(m/z, intensity) pairs of one scan."""
        ...


@dataclass
class RawScanData:
    """Raw scans in wide format.

    Data points of scan ``s`` are ``mz[offsets[s]:offsets[s + 1]]`` and
    ``intensity[offsets[s]:offsets[s + 1]]``.
    """

    times: np.ndarray      # float64, shape (n_scans,)
    mz: np.ndarray         # float64, shape (n_points,)
    intensity: np.ndarray  # float64, shape (n_points,)
    offsets: np.ndarray    # int64, shape (n_scans + 1,)

    def __post_init__(self):
        self.times = np.ascontiguousarray(self.times, dtype=np.float64)
        self.mz = np.ascontiguousarray(self.mz, dtype=np.float64)
        self.intensity = np.ascontiguousarray(self.intensity, dtype=np.float64)
        self.offsets = np.ascontiguousarray(self.offsets, dtype=np.int64)

        if self.times.ndim != 1:
            raise ValueError("Scan times must be a 1D array")
        if self.mz.shape != self.intensity.shape:
            raise ValueError(
                f"m/z and intensity arrays differ in shape: {self.mz.shape} vs {self.intensity.shape}"
            )
        if len(self.offsets) != len(self.times) + 1:
            raise ValueError(
                f"Expected {len(self.times) + 1} scan offsets, got {len(self.offsets)}"
            )
        if self.offsets[0] != 0 or self.offsets[-1] != len(self.mz) or np.any(np.diff(self.offsets) < 0):
            raise ValueError("Scan offsets must start at 0, be non-decreasing and end at n_points")
        if np.any(np.diff(self.times) < 0):
            raise ValueError("Scan times must be sorted ascending")

    @property
    def n_scans(self) -> int:
        return len(self.times)

    def get_scan_times(self) -> np.ndarray:
        return self.times

    def get_scan_data_points(self, scan_index: int) -> np.ndarray:
        start, end = self.offsets[scan_index], self.offsets[scan_index + 1]
        return np.column_stack((self.mz[start:end], self.intensity[start:end]))

    @classmethod
    def from_scans(
        cls,
        times: Sequence[float],
        scans: Sequence[Tuple[np.ndarray, np.ndarray]],
    ) -> 'RawScanData':
        """Build from per-scan (mz_array, intensity_array) tuples.

        Args:
            times: Retention time of each scan
            scans: One (mz_array, intensity_array) tuple per scan

        Returns:
            RawScanData in wide format
        """
        if len(times) != len(scans):
            raise ValueError(f"Got {len(times)} scan times but {len(scans)} scans")

        mz_parts = []
        intensity_parts = []
        offsets = np.zeros(len(scans) + 1, dtype=np.int64)

        for s, (scan_mz, scan_intensity) in enumerate(scans):
            scan_mz = np.asarray(scan_mz, dtype=np.float64).ravel()
            scan_intensity = np.asarray(scan_intensity, dtype=np.float64).ravel()
            if len(scan_mz) != len(scan_intensity):
                raise ValueError(
                    f"Scan {s}: {len(scan_mz)} m/z values but {len(scan_intensity)} intensities"
                )
            mz_parts.append(scan_mz)
            intensity_parts.append(scan_intensity)
            offsets[s + 1] = offsets[s] + len(scan_mz)

        return cls(
            times=np.asarray(times, dtype=np.float64),
            mz=np.concatenate(mz_parts) if mz_parts else np.zeros(0, dtype=np.float64),
            intensity=np.concatenate(intensity_parts) if intensity_parts else np.zeros(0, dtype=np.float64),
            offsets=offsets,
        )

    @classmethod
    def from_accessor(cls, raw: RawDataAccessor) -> 'RawScanData':
        """Flatten any RawDataAccessor into wide format (no copy if already RawScanData)."""
        if isinstance(raw, RawScanData):
            return raw

        times = np.asarray(raw.get_scan_times(), dtype=np.float64)
        scans = []
        for s in range(len(times)):
            points = np.asarray(raw.get_scan_data_points(s), dtype=np.float64).reshape(-1, 2)
            scans.append((points[:, 0], points[:, 1]))

        return cls.from_scans(times, scans)


@nb.njit
def locate_scan_index(scan_times: np.ndarray, target: float, tolerance: float) -> int:
    """Find the scan whose time is nearest to target using binary search.

    Parameters
    ----------
    scan_times : np.ndarray
        Sorted scan times
    target : float
        Retention time to locate
    tolerance : float
        Maximum accepted |scan_time - target|

    Returns
    -------
    int
        Index of the nearest scan, or -1 if no scan lies within tolerance

    Examples
    --------
    >>> scan_times = np.array([0.0, 0.5, 1.0, 1.5])
    >>> locate_scan_index(scan_times, 1.0, 1e-6)
    2
    >>> locate_scan_index(scan_times, 1.2, 1e-6)
    -1
    """
    n = len(scan_times)
    if n == 0:
        return -1

    # First index with scan_times[idx] >= target
    left, right = 0, n
    while left < right:
        mid = (left + right) // 2
        if scan_times[mid] < target:
            left = mid + 1
        else:
            right = mid

    best_idx = -1
    best_diff = np.inf

    if left < n:
        best_idx = left
        best_diff = abs(scan_times[left] - target)

    if left > 0:
        diff = abs(scan_times[left - 1] - target)
        if diff < best_diff:
            best_idx = left - 1
            best_diff = diff

    if best_diff <= tolerance:
        return best_idx
    return -1


@nb.njit
def locate_feature_windows(
    scan_times: np.ndarray,
    rt_min: np.ndarray,
    rt_max: np.ndarray,
    tolerance: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Locate the scan window [start, end) of every feature.

    Returns
    -------
    starts : np.ndarray (int64)
        Scan index matching rt_min, -1 if either bound is unmatched
    ends : np.ndarray (int64)
        Scan index matching rt_max, -1 if either bound is unmatched
    """
    n_features = len(rt_min)
    starts = -np.ones(n_features, dtype=np.int64)
    ends = -np.ones(n_features, dtype=np.int64)

    for i in range(n_features):
        start = locate_scan_index(scan_times, rt_min[i], tolerance)
        end = locate_scan_index(scan_times, rt_max[i], tolerance)
        if start >= 0 and end >= 0:
            starts[i] = start
            ends[i] = end

    return starts, ends


@nb.njit(parallel=True)
def build_traces_numba(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    scan_offsets: np.ndarray,
    starts: np.ndarray,
    ends: np.ndarray,
    mz_min: np.ndarray,
    mz_max: np.ndarray,
    n_scans: int,
    no_signal: float,
) -> np.ndarray:
    """Build all feature traces in parallel.

    Parameters
    ----------
    mz_array, intensity_array : np.ndarray (float64)
        Data points of all scans, concatenated in scan order
    scan_offsets : np.ndarray (int64)
        Start of every scan in the flat arrays, length n_scans + 1
    starts, ends : np.ndarray (int64)
        Scan window [start, end) per feature, -1 for unmatched features
    mz_min, mz_max : np.ndarray (float64)
        Inclusive m/z range per feature
    n_scans : int
        Number of scans (trace length)
    no_signal : float
        Value for scans without qualifying data points

    Returns
    -------
    traces : np.ndarray (float64)
        Shape (n_features, n_scans); each entry is the mean intensity of the
        data points of that scan inside the feature's m/z range
    """
    n_features = len(starts)
    traces = np.full((n_features, n_scans), no_signal, dtype=np.float64)

    for f in nb.prange(n_features):
        start = starts[f]
        end = ends[f]
        if start < 0 or end < 0:
            continue

        low_mz = mz_min[f]
        high_mz = mz_max[f]

        for s in range(start, end):
            total = 0.0
            count = 0
            for p in range(scan_offsets[s], scan_offsets[s + 1]):
                if low_mz <= mz_array[p] <= high_mz:
                    total += intensity_array[p]
                    count += 1
            if count > 0:
                traces[f, s] = total / count

    return traces


class TraceBuilder:
    """Rebuild one intensity trace per feature on the raw file's scan axis.

    Examples
    --------
    >>> builder = TraceBuilder(rt_match_tolerance=1e-6)
    >>> traces = builder.build_traces(raw, features)
    >>> traces.shape
    (len(features), raw.n_scans)
    """

    def __init__(self, rt_match_tolerance: float = DEFAULT_RT_MATCH_TOLERANCE):
        if rt_match_tolerance < 0:
            raise ValueError(f"rt_match_tolerance must be >= 0, got {rt_match_tolerance}")
        self.rt_match_tolerance = rt_match_tolerance

    def locate_windows(
        self,
        raw: RawDataAccessor,
        features: Sequence[FeatureRecord],
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Scan window [start, end) per feature; -1 where a bound is unmatched."""
        raw = RawScanData.from_accessor(raw)
        columns = features_to_arrays(features)
        return locate_feature_windows(
            raw.times, columns['rt_min'], columns['rt_max'], self.rt_match_tolerance
        )

    def build_traces(
        self,
        raw: RawDataAccessor,
        features: Sequence[FeatureRecord],
        windows: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    ) -> np.ndarray:
        """Build traces for all features, preserving input order.

        Parameters
        ----------
        raw : RawDataAccessor
            Raw scans of the sample (RawScanData or any accessor)
        features : Sequence[FeatureRecord]
            Features whose RT bounds refer to the raw file's scan times
        windows : tuple of np.ndarray, optional
            (starts, ends) from locate_windows(); looked up when omitted

        Returns
        -------
        np.ndarray (float64)
            Trace matrix of shape (n_features, n_scans)
        """
        raw = RawScanData.from_accessor(raw)
        columns = features_to_arrays(features)

        if windows is None:
            starts, ends = locate_feature_windows(
                raw.times, columns['rt_min'], columns['rt_max'], self.rt_match_tolerance
            )
        else:
            starts = np.asarray(windows[0], dtype=np.int64)
            ends = np.asarray(windows[1], dtype=np.int64)
            if len(starts) != len(features) or len(ends) != len(features):
                raise ValueError(
                    f"Got windows for {len(starts)} features but {len(features)} features"
                )

        n_unmatched = int(np.sum(starts < 0))
        if n_unmatched > 0:
            logger.info(
                f"{n_unmatched:,} of {len(features):,} features have RT bounds "
                f"without a matching scan; their traces stay empty"
            )

        traces = build_traces_numba(
            raw.mz, raw.intensity, raw.offsets,
            starts, ends,
            columns['mz_min'], columns['mz_max'],
            raw.n_scans, NO_SIGNAL_INTENSITY,
        )

        logger.info(f"✓ Built {len(features):,} traces over {raw.n_scans:,} scans")
        return traces
