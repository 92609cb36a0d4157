"""Minimal conflict set detection.

Reports the smallest groups of entities that cannot all be held together:

- pairs of judgments joined by a conflicts link
- triads of judgments whose three pairwise conflict edges are all present
- a universal principle conflicts-linked to a live, high-confidence judgment

Cliques of four or more judgments are never reported. The triad search is a
brute-force O(n^3) pass over judgment ids, which is fine at deliberation
scale (tens of entities). Extending it to larger cliques is tracked as
future work and must not happen silently here.
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Dict, List, Set

from equilibrium.engine.scoring import EntityIndex
from equilibrium.types import ConflictSet, EntityType, PrincipleScope, Relation, Session

logger = logging.getLogger(__name__)

PAIR_REASON = "Pairwise judgment conflict link."
TRIAD_REASON = "Three-way pairwise judgment conflict clique."
UNIVERSAL_REASON = "Universal principle conflicts with a high-confidence judgment."

# Judgments below this confidence do not put a universal principle in conflict.
HIGH_CONFIDENCE = 50

MAX_CONFLICT_SET_SIZE = 3


def build_conflict_graph(session: Session) -> Dict[str, Set[str]]:
    """Undirected adjacency over judgment ids from judgment-judgment conflicts links."""
    graph: Dict[str, Set[str]] = {judgment.id: set() for judgment in session.judgments}
    for link in session.links:
        if link.relation != Relation.CONFLICTS:
            continue
        if link.from_type != EntityType.JUDGMENT or link.to_type != EntityType.JUDGMENT:
            continue
        if link.from_id not in graph or link.to_id not in graph:
            continue
        graph[link.from_id].add(link.to_id)
        graph[link.to_id].add(link.from_id)
    return graph


def detect_conflicts(session: Session) -> List[ConflictSet]:
    """Find minimal conflict sets of size 2 and 3.

    Output is deduplicated by sorted id key and ordered by size, then key.
    """
    found: Dict[str, ConflictSet] = {}

    def _add(ids: List[str], reason: str) -> None:
        canonical = tuple(sorted(ids))
        key = "|".join(canonical)
        if key not in found:
            found[key] = ConflictSet(ids=canonical, reason=reason)

    graph = build_conflict_graph(session)
    judgment_ids = sorted(graph)

    for judgment_id in judgment_ids:
        for neighbor in sorted(graph[judgment_id]):
            if judgment_id < neighbor:
                _add([judgment_id, neighbor], PAIR_REASON)

    for a, b, c in combinations(judgment_ids, MAX_CONFLICT_SET_SIZE):
        if b in graph[a] and c in graph[a] and c in graph[b]:
            _add([a, b, c], TRIAD_REASON)

    index = EntityIndex(session)
    for principle in session.principles:
        if principle.scope != PrincipleScope.UNIVERSAL:
            continue
        for link in session.links:
            if link.relation != Relation.CONFLICTS:
                continue
            if (
                link.from_type == EntityType.JUDGMENT
                and link.to_type == EntityType.PRINCIPLE
                and link.to_id == principle.id
            ):
                judgment_id = link.from_id
            elif (
                link.from_type == EntityType.PRINCIPLE
                and link.to_type == EntityType.JUDGMENT
                and link.from_id == principle.id
            ):
                judgment_id = link.to_id
            else:
                continue

            judgment = index.judgments.get(judgment_id)
            if judgment is None or judgment.rejected or judgment.confidence < HIGH_CONFIDENCE:
                continue
            _add([principle.id, judgment.id], UNIVERSAL_REASON)

    result = sorted(found.values(), key=lambda conflict: (conflict.size, conflict.key))
    logger.debug("Session %s: %d minimal conflict sets", session.id, len(result))
    return result
