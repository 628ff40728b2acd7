"""Convenience wrapper for one-call clique grouping.

This module wraps the GroupingEngine so that a structured feature table and a
set of raw scans can be grouped without building records, trace builder and
assigner by hand.

Use this function when you want a simple API; use GroupingEngine directly for
phase callbacks, cancellation or a custom clique assigner set up elsewhere.

Examples
--------
>>> from alphaclique import compute_cliques
>>> from alphaclique.xic import RawScanData
>>>
>>> raw = RawScanData.from_scans(scan_times, scans)
>>> result = compute_cliques(raw, feature_table)
>>> result.clique_by_row
{1: 1, 2: 1, 3: 2}

>>> # With near-duplicate filtering
>>> from alphaclique.cliques import CliqueGroupingParams
>>> params = CliqueGroupingParams(enable_filter=True)
>>> result = compute_cliques(raw, feature_table, params=params)
>>> result.n_removed
1
"""

from typing import Optional, Sequence, Union

import numpy as np

from .cliques.assigner import CliqueAssigner
from .cliques.engine import CliqueGroupingParams, CliqueResult, GroupingEngine
from .features.records import FeatureRecord, feature_records_from_array
from .xic.extraction import RawDataAccessor, TraceBuilder


def compute_cliques(
    raw: RawDataAccessor,
    features: Union[np.ndarray, Sequence[FeatureRecord]],
    params: Optional[CliqueGroupingParams] = None,
    assigner: Optional[CliqueAssigner] = None,
) -> CliqueResult:
    """Group the features of one sample into cliques (convenience wrapper).

    Parameters
    ----------
    raw : RawDataAccessor
        Raw scans of the sample (RawScanData or any accessor)
    features : np.ndarray or Sequence[FeatureRecord]
        Structured feature table (see feature_records_from_array) or records
    params : CliqueGroupingParams, optional
        Grouping parameters; defaults are used when omitted
    assigner : CliqueAssigner, optional
        Clique search strategy; LikelihoodCliqueAssigner when omitted

    Returns
    -------
    CliqueResult
        Clique id per source row plus diagnostics

    See Also
    --------
    GroupingEngine : Engine with phase callbacks and cancellation
    """
    if params is None:
        params = CliqueGroupingParams()

    if isinstance(features, np.ndarray):
        features = feature_records_from_array(features)

    engine = GroupingEngine(
        raw,
        features,
        assigner=assigner,
        trace_builder=TraceBuilder(rt_match_tolerance=params.rt_match_tolerance),
    )

    return engine.compute_cliques(
        enable_filter=params.enable_filter,
        mz_tolerance=params.mz_tolerance,
        rt_tolerance=params.rt_tolerance,
        intensity_tolerance=params.intensity_tolerance,
        clique_tolerance=params.clique_tolerance,
        duplicate_similarity=params.duplicate_similarity,
    )
