"""
Grouping engine: traces, similarity, duplicate filtering and cliques for one sample.

The engine runs the phases in a fixed order

    INITIALIZED -> TRACES_BUILT -> SIMILARITY_COMPUTED -> [FILTERED]
                -> CLIQUES_ASSIGNED -> BACKFILL_COMPLETE

and processes exactly one feature list. Cancellation is only honoured between
phases so that a half-computed similarity matrix is never used.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from ..constants import (
    DEFAULT_CLIQUE_TOLERANCE,
    DEFAULT_INTENSITY_TOLERANCE,
    DEFAULT_MZ_TOLERANCE,
    DEFAULT_RT_MATCH_TOLERANCE,
    DEFAULT_RT_TOLERANCE,
    DUPLICATE_SIMILARITY_THRESHOLD,
)
from ..features.records import FeatureRecord
from ..scoring.duplicates import DuplicateFilter
from ..scoring.similarity import SimilarityMatrix
from ..xic.extraction import RawDataAccessor, RawScanData, TraceBuilder
from .assigner import CliqueAssigner, CliqueAssignmentError, backfill_cliques
from .network import LikelihoodCliqueAssigner

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Phases of one grouping run."""
    INITIALIZED = "initialized"
    TRACES_BUILT = "traces_built"
    SIMILARITY_COMPUTED = "similarity_computed"
    FILTERED = "filtered"
    CLIQUES_ASSIGNED = "cliques_assigned"
    BACKFILL_COMPLETE = "backfill_complete"


class GroupingCancelled(RuntimeError):
    """Raised when a run is cancelled between phases."""


@dataclass
class CliqueGroupingParams:
    """Parameters for clique grouping.

    Tolerances for duplicate detection are relative differences
    (|a - b| / |a|), not ppm or seconds.
    """

    # Near-duplicate filtering
    enable_filter: bool = False
    mz_tolerance: float = DEFAULT_MZ_TOLERANCE
    rt_tolerance: float = DEFAULT_RT_TOLERANCE
    intensity_tolerance: float = DEFAULT_INTENSITY_TOLERANCE
    duplicate_similarity: float = DUPLICATE_SIMILARITY_THRESHOLD

    # Clique search stopping criterion
    clique_tolerance: float = DEFAULT_CLIQUE_TOLERANCE

    # Max |scan_time - rt_bound| when locating trace windows
    rt_match_tolerance: float = DEFAULT_RT_MATCH_TOLERANCE

    def __post_init__(self):
        for name in ('mz_tolerance', 'rt_tolerance', 'intensity_tolerance',
                     'clique_tolerance', 'rt_match_tolerance'):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")


@dataclass
class CliqueResult:
    """Clique assignment of one sample plus run diagnostics."""

    # Final assignment (post-filter features only)
    clique_by_row: Dict[int, int]
    clique_by_node: Dict[int, int]

    # Working feature set after filtering, and what was removed
    features: List[FeatureRecord] = field(default_factory=list)
    removed_features: List[FeatureRecord] = field(default_factory=list)

    # Diagnostics
    backfilled_node_ids: List[int] = field(default_factory=list)
    n_unmatched_windows: int = 0

    similarity: Optional[SimilarityMatrix] = None

    @property
    def n_removed(self) -> int:
        return len(self.removed_features)

    @property
    def n_backfilled(self) -> int:
        return len(self.backfilled_node_ids)

    @property
    def n_cliques(self) -> int:
        return len(set(self.clique_by_node.values()))

    def members(self) -> Dict[int, List[int]]:
        """Source row ids per clique id, cliques in ascending id order."""
        groups: Dict[int, List[int]] = {}
        for row_id, clique_id in self.clique_by_row.items():
            groups.setdefault(clique_id, []).append(row_id)
        return dict(sorted(groups.items()))


class GroupingEngine:
    """Group the features of one sample into cliques of co-varying signals.

    Examples
    --------
    >>> engine = GroupingEngine(raw, features)
    >>> result = engine.compute_cliques(enable_filter=True)
    >>> result.clique_by_row
    {101: 1, 102: 1, 103: 2}
    """

    def __init__(
        self,
        raw: RawDataAccessor,
        features: Sequence[FeatureRecord],
        assigner: Optional[CliqueAssigner] = None,
        trace_builder: Optional[TraceBuilder] = None,
        on_phase: Optional[Callable[[EngineState], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ):
        node_ids = [f.node_id for f in features]
        if len(set(node_ids)) != len(node_ids):
            raise ValueError("Feature node ids must be unique")
        row_ids = [f.source_row_id for f in features]
        if len(set(row_ids)) != len(row_ids):
            raise ValueError("Feature source row ids must be unique")

        self.raw = raw
        self.assigner = assigner if assigner is not None else LikelihoodCliqueAssigner()
        self.trace_builder = trace_builder if trace_builder is not None else TraceBuilder()
        self.on_phase = on_phase
        self.should_cancel = should_cancel

        self._features: List[FeatureRecord] = list(features)
        self._similarity: Optional[SimilarityMatrix] = None
        self.state = EngineState.INITIALIZED

    @property
    def features(self) -> List[FeatureRecord]:
        """Current working feature sequence."""
        return list(self._features)

    def _advance(self, state: EngineState):
        self.state = state
        if self.on_phase is not None:
            self.on_phase(state)

    def _check_cancelled(self):
        if self.should_cancel is not None and self.should_cancel():
            self._similarity = None
            raise GroupingCancelled(f"Grouping cancelled after phase '{self.state.value}'")

    def compute_cliques(
        self,
        enable_filter: bool = False,
        mz_tolerance: float = DEFAULT_MZ_TOLERANCE,
        rt_tolerance: float = DEFAULT_RT_TOLERANCE,
        intensity_tolerance: float = DEFAULT_INTENSITY_TOLERANCE,
        clique_tolerance: float = DEFAULT_CLIQUE_TOLERANCE,
        duplicate_similarity: float = DUPLICATE_SIMILARITY_THRESHOLD,
    ) -> CliqueResult:
        """Run all phases and return the final clique assignment.

        Args:
            enable_filter: Remove near-duplicate features before clique search
            mz_tolerance: Max relative m/z difference of near-duplicates
            rt_tolerance: Max relative RT difference of near-duplicates
            intensity_tolerance: Max relative intensity difference of near-duplicates
            clique_tolerance: Stopping tolerance passed to the clique assigner
            duplicate_similarity: Similarity above which pairs are duplicate candidates

        Returns:
            CliqueResult covering every feature that survived filtering

        Raises:
            CliqueAssignmentError: the assigner failed or returned invalid output
            GroupingCancelled: should_cancel() returned True between phases
            RuntimeError: the engine was already used
        """
        if self.state != EngineState.INITIALIZED:
            raise RuntimeError("GroupingEngine processes one feature list; create a new engine")

        if not self._features:
            logger.info("No features supplied; returning empty clique assignment")
            self._advance(EngineState.BACKFILL_COMPLETE)
            return CliqueResult(clique_by_row={}, clique_by_node={})

        dup_filter = None
        if enable_filter:
            dup_filter = DuplicateFilter(
                mz_tolerance, rt_tolerance, intensity_tolerance, duplicate_similarity
            )

        logger.info(f"Grouping {len(self._features):,} features into cliques...")

        # Phase 1: traces
        raw = RawScanData.from_accessor(self.raw)
        windows = self.trace_builder.locate_windows(raw, self._features)
        n_unmatched = int((windows[0] < 0).sum())
        if n_unmatched == len(self._features):
            logger.warning(
                "No feature RT window matches the raw file's scan times; "
                "every feature will end up in its own clique"
            )
        traces = self.trace_builder.build_traces(raw, self._features, windows=windows)
        self._advance(EngineState.TRACES_BUILT)
        self._check_cancelled()

        # Phase 2: similarity
        self._similarity = SimilarityMatrix.compute(traces)
        self._advance(EngineState.SIMILARITY_COMPUTED)
        self._check_cancelled()

        # Phase 3: optional near-duplicate removal
        removed: List[FeatureRecord] = []
        if dup_filter is not None:
            filtered = dup_filter.filter(self._similarity, self._features)
            self._features = filtered.features
            self._similarity = filtered.matrix
            removed = filtered.removed_features
            self._advance(EngineState.FILTERED)
            self._check_cancelled()

        # Phase 4: clique search
        node_ids = [f.node_id for f in self._features]
        try:
            assignments = list(self.assigner.assign(self._similarity.values, node_ids, clique_tolerance))
        except Exception as exc:
            raise CliqueAssignmentError(f"Clique assignment failed: {exc}") from exc
        self._advance(EngineState.CLIQUES_ASSIGNED)
        self._check_cancelled()

        # Phase 5: singleton cliques for everything the assigner left out
        clique_by_node, backfilled = backfill_cliques(assignments, node_ids)
        clique_by_row = {f.source_row_id: clique_by_node[f.node_id] for f in self._features}
        self._advance(EngineState.BACKFILL_COMPLETE)

        result = CliqueResult(
            clique_by_row=clique_by_row,
            clique_by_node=clique_by_node,
            features=list(self._features),
            removed_features=removed,
            backfilled_node_ids=backfilled,
            n_unmatched_windows=n_unmatched,
            similarity=self._similarity,
        )

        logger.info(f"{len(backfilled):,} features not assigned by clique search; given singleton cliques")
        logger.info("✓ Clique grouping complete:")
        logger.info(f"  Features grouped: {len(self._features):,}")
        logger.info(f"  Near-duplicates removed: {result.n_removed:,}")
        logger.info(f"  Cliques: {result.n_cliques:,}")

        return result
