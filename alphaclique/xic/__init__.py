"""Trace (XIC) extraction for detected features.

This module rebuilds the extracted ion chromatogram of every feature on the
scan time axis of its raw file.

Key Features
------------
- Wide-format scan storage (flat m/z / intensity arrays plus scan offsets)
- Binary search of RT window bounds with a match tolerance
- Mean intensity per scan inside the feature's m/z range
- Parallel extraction with Numba

Examples
--------
>>> from alphaclique.xic import RawScanData, TraceBuilder
>>>
>>> raw = RawScanData.from_scans(scan_times, [(mz0, int0), (mz1, int1), ...])
>>> traces = TraceBuilder().build_traces(raw, features)
>>> traces.shape
(n_features, n_scans)
"""

from .extraction import (
    RawDataAccessor,
    RawScanData,
    TraceBuilder,
    build_traces_numba,
    locate_feature_windows,
    locate_scan_index,
)

__all__ = [
    "RawDataAccessor",
    "RawScanData",
    "TraceBuilder",
    "build_traces_numba",
    "locate_feature_windows",
    "locate_scan_index",
]
