"""Feature records consumed by the grouping engine.

This module provides:
- An immutable record for one detected feature (m/z, RT, intensity ranges)
- Conversion from a structured feature table
- Columnar views for Numba-compiled kernels
"""

from .records import (
    REQUIRED_FIELDS,
    FeatureRecord,
    feature_records_from_array,
    features_to_arrays,
)

__all__ = [
    'REQUIRED_FIELDS',
    'FeatureRecord',
    'feature_records_from_array',
    'features_to_arrays',
]
