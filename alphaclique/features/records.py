"""
Feature records for correlation-based grouping.

A feature is one chromatographic peak detected in a sample: an m/z range, a
retention-time range, an apex and a height. Records are immutable; filtering
produces new lists holding the same record objects and never renumbers
node ids.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np


REQUIRED_FIELDS = ('mz', 'mz_min', 'mz_max', 'rt', 'rt_min', 'rt_max', 'intensity')


@dataclass(frozen=True)
class FeatureRecord:
    """One detected feature of a single sample.

    ``node_id`` is the stable identity handed to the clique assigner,
    ``source_row_id`` points back to the row of the originating feature table.
    Retention times must use the same unit as the raw file's scan times.
    """

    node_id: int
    source_row_id: int

    # m/z (apex and raw data point range)
    mz: float
    mz_min: float
    mz_max: float

    # Retention time (apex and raw data point range)
    rt: float
    rt_min: float
    rt_max: float

    # Height
    intensity: float

    def __post_init__(self):
        if self.node_id < 1:
            raise ValueError(f"node_id must be a positive integer, got {self.node_id}")
        if not self.mz_min <= self.mz <= self.mz_max:
            raise ValueError(
                f"Feature {self.node_id}: expected mz_min <= mz <= mz_max, "
                f"got {self.mz_min}, {self.mz}, {self.mz_max}"
            )
        if not self.rt_min <= self.rt <= self.rt_max:
            raise ValueError(
                f"Feature {self.node_id}: expected rt_min <= rt <= rt_max, "
                f"got {self.rt_min}, {self.rt}, {self.rt_max}"
            )
        if not self.intensity >= 0:
            raise ValueError(
                f"Feature {self.node_id}: intensity must be non-negative, got {self.intensity}"
            )


def feature_records_from_array(table: np.ndarray) -> List[FeatureRecord]:
    """Build feature records from a structured feature table.

    Args:
        table: Structured numpy array with fields:
            - mz, mz_min, mz_max: apex m/z and raw data point m/z range
            - rt, rt_min, rt_max: apex RT and raw data point RT range
            - intensity: feature height
            - row_id (optional): identifier of the originating table row

    Returns:
        List of FeatureRecord in table order. ``node_id`` is the 1-based row
        position; ``source_row_id`` is ``row_id`` when present, else node_id.
    """
    names = table.dtype.names or ()
    missing = [name for name in REQUIRED_FIELDS if name not in names]
    if missing:
        raise ValueError(f"Feature table is missing required fields: {missing}")

    has_row_id = 'row_id' in names
    records = []

    for i in range(len(table)):
        row = table[i]
        node_id = i + 1
        records.append(FeatureRecord(
            node_id=node_id,
            source_row_id=int(row['row_id']) if has_row_id else node_id,
            mz=float(row['mz']),
            mz_min=float(row['mz_min']),
            mz_max=float(row['mz_max']),
            rt=float(row['rt']),
            rt_min=float(row['rt_min']),
            rt_max=float(row['rt_max']),
            intensity=float(row['intensity']),
        ))

    return records


def features_to_arrays(features: Sequence[FeatureRecord]) -> Dict[str, np.ndarray]:
    """Convert feature records to contiguous columns for Numba kernels.

    Returns:
        Dictionary with float64 arrays for every value field and int64 arrays
        for 'node_id' and 'source_row_id'. All arrays have len(features).
    """
    columns = {
        name: np.array([getattr(f, name) for f in features], dtype=np.float64)
        for name in REQUIRED_FIELDS
    }
    columns['node_id'] = np.array([f.node_id for f in features], dtype=np.int64)
    columns['source_row_id'] = np.array([f.source_row_id for f in features], dtype=np.int64)
    return columns
