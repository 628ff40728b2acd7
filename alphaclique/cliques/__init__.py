"""Clique assignment and the grouping engine.

This module provides:
- The CliqueAssigner protocol (pluggable clustering strategy)
- Singleton backfill for nodes an assigner leaves ungrouped
- A log-likelihood clique search over the similarity network
- GroupingEngine, which runs traces -> similarity -> filtering -> cliques
"""

from .assigner import (
    CliqueAssigner,
    CliqueAssignmentError,
    backfill_cliques,
)

from .network import (
    LikelihoodCliqueAssigner,
    edge_log_odds,
    greedy_clique_search,
)

from .engine import (
    CliqueGroupingParams,
    CliqueResult,
    EngineState,
    GroupingCancelled,
    GroupingEngine,
)

__all__ = [
    # Assigner interface
    'CliqueAssigner',
    'CliqueAssignmentError',
    'backfill_cliques',

    # Likelihood clique search
    'LikelihoodCliqueAssigner',
    'edge_log_odds',
    'greedy_clique_search',

    # Engine
    'CliqueGroupingParams',
    'CliqueResult',
    'EngineState',
    'GroupingCancelled',
    'GroupingEngine',
]
