"""Clique assignment capability and singleton backfill.

A clique assigner partitions nodes of a similarity network into cliques. It
may return a partial mapping: nodes it cannot group with confidence (for
example nodes without any edge) are simply left out. The backfill step then
gives every omitted node its own clique so that the final assignment covers
every feature exactly once.
"""

from typing import Dict, Iterable, List, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np


class CliqueAssignmentError(RuntimeError):
    """The clique assigner failed or returned an unusable assignment."""


@runtime_checkable
class CliqueAssigner(Protocol):
    """Strategy that groups nodes of a similarity matrix into cliques."""

    def assign(
        self,
        similarity: np.ndarray,
        node_ids: Sequence[int],
        tolerance: float,
    ) -> Iterable[Tuple[int, int]]:
        """Return (node_id, clique_id) pairs for the nodes it could group.

        ``similarity[i, j]`` relates ``node_ids[i]`` and ``node_ids[j]``.
        Clique ids must be positive integers.
        """
        ...


def backfill_cliques(
    assignments: Iterable[Tuple[int, int]],
    node_ids: Sequence[int],
) -> Tuple[Dict[int, int], List[int]]:
    """Complete a partial clique assignment with singleton cliques.

    Every node missing from ``assignments`` receives a new clique id,
    starting at ``max(assigned clique ids) + 1`` (1 if nothing was assigned)
    and incrementing by one per node in ``node_ids`` order.

    Args:
        assignments: (node_id, clique_id) pairs returned by an assigner
        node_ids: All node ids that must appear in the final assignment

    Returns:
        Tuple of (node_id -> clique_id mapping in node_ids order,
        list of backfilled node ids)

    Raises:
        CliqueAssignmentError: assignments reference unknown nodes, repeat a
            node, or use non-positive clique ids
    """
    known = set(node_ids)
    assigned: Dict[int, int] = {}

    for pair in assignments:
        try:
            node_id, clique_id = pair
            is_positive_int = int(clique_id) == clique_id and clique_id >= 1
        except (TypeError, ValueError, OverflowError) as exc:
            raise CliqueAssignmentError(
                f"Assigner returned malformed (node_id, clique_id) pair {pair!r}"
            ) from exc

        if node_id not in known:
            raise CliqueAssignmentError(f"Assigner returned unknown node id {node_id}")
        if node_id in assigned:
            raise CliqueAssignmentError(f"Assigner returned node id {node_id} more than once")
        if not is_positive_int:
            raise CliqueAssignmentError(
                f"Clique ids must be positive integers, got {clique_id} for node {node_id}"
            )
        assigned[node_id] = int(clique_id)

    max_clique = max(assigned.values(), default=0)

    mapping: Dict[int, int] = {}
    backfilled: List[int] = []

    for node_id in node_ids:
        if node_id in assigned:
            mapping[node_id] = assigned[node_id]
        else:
            max_clique += 1
            mapping[node_id] = max_clique
            backfilled.append(node_id)

    return mapping, backfilled
