"""Coherence scorer.

Combines three terms into one advisory 0-100 score:

- agreement ratio: how well each link's relation matches the stances of
  its endpoints (a supports link agrees when both point the same way, a
  conflicts link agrees when they point opposite ways)
- supported confidence: how much confidence sits behind supports links
- parsimony penalty: principles and links relative to the number of
  entities they organize

The score is a heuristic for deliberation, not a proof of correctness.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from equilibrium.engine.signals import signal
from equilibrium.types import (
    DEFAULT_WEIGHTS,
    CoherenceBreakdown,
    CoherenceWeights,
    EntityType,
    Judgment,
    Link,
    Principle,
    Relation,
    Session,
    clamp,
)

logger = logging.getLogger(__name__)

# Each link costs this fraction of a principle in the parsimony term.
LINK_COMPLEXITY = 0.35

WeightsInput = Union[CoherenceWeights, Mapping[str, Any], None]


@dataclass(frozen=True)
class ScoreResult:
    """A score and the breakdown that produced it."""

    score: float
    breakdown: CoherenceBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "breakdown": self.breakdown.to_dict()}


def normalize_weights(weights: WeightsInput = None) -> CoherenceWeights:
    """Clamp each weight into [0, 1] and rescale so they sum to 1.

    Missing fields take their defaults. If nothing positive is left, the
    defaults are returned as-is.
    """
    if weights is None:
        merged = DEFAULT_WEIGHTS
    elif isinstance(weights, CoherenceWeights):
        merged = weights
    else:
        merged = CoherenceWeights.from_dict(dict(weights))

    agreement = clamp(merged.agreement_ratio, 0.0, 1.0)
    confidence = clamp(merged.avg_confidence_supported, 0.0, 1.0)
    parsimony = clamp(merged.parsimony_penalty, 0.0, 1.0)

    total = agreement + confidence + parsimony
    if total <= 0:
        return DEFAULT_WEIGHTS

    return CoherenceWeights(
        agreement_ratio=agreement / total,
        avg_confidence_supported=confidence / total,
        parsimony_penalty=parsimony / total,
    )


class EntityIndex:
    """id -> entity lookup for one session snapshot."""

    def __init__(self, session: Session) -> None:
        self.judgments: Dict[str, Judgment] = {}
        self.principles: Dict[str, Principle] = {}
        # First occurrence wins, matching a linear scan of the session.
        for judgment in session.judgments:
            self.judgments.setdefault(judgment.id, judgment)
        for principle in session.principles:
            self.principles.setdefault(principle.id, principle)

    def resolve(
        self, entity_type: EntityType, entity_id: str
    ) -> Optional[Union[Judgment, Principle]]:
        if entity_type == EntityType.JUDGMENT:
            return self.judgments.get(entity_id)
        return self.principles.get(entity_id)

    def is_valid(self, link: Link) -> bool:
        return (
            self.resolve(link.from_type, link.from_id) is not None
            and self.resolve(link.to_type, link.to_id) is not None
        )


def valid_links(session: Session, index: Optional[EntityIndex] = None) -> List[Link]:
    """Links whose endpoints both resolve. Dangling links are dropped silently."""
    index = index or EntityIndex(session)
    return [link for link in session.links if index.is_valid(link)]


def _link_agreement(link: Link, index: EntityIndex) -> float:
    product = signal(index.resolve(link.from_type, link.from_id)) * signal(
        index.resolve(link.to_type, link.to_id)
    )
    if link.relation == Relation.SUPPORTS:
        return (product + 1.0) / 2.0
    return (1.0 - product) / 2.0


def _support_confidence(link: Link, index: EntityIndex) -> Optional[float]:
    """Confidence carried by one supports link, or None if the pair has none."""
    start = index.resolve(link.from_type, link.from_id)
    end = index.resolve(link.to_type, link.to_id)

    if isinstance(start, Judgment) and isinstance(end, Judgment):
        return min(start.confidence, end.confidence)
    if isinstance(start, Judgment) and isinstance(end, Principle):
        return start.confidence * max(0.0, end.plausibility)
    if isinstance(start, Principle) and isinstance(end, Judgment):
        return end.confidence * max(0.0, start.plausibility)
    return None


def score(session: Session, weights: WeightsInput = None) -> ScoreResult:
    """Score a session snapshot.

    ``weights`` is normalized first, so callers may pass raw or partial
    weights. Pure and deterministic; O(number of links).
    """
    normalized = normalize_weights(weights)
    index = EntityIndex(session)
    links = valid_links(session, index)

    agreements = [_link_agreement(link, index) for link in links]
    agreement_ratio = sum(agreements) / len(agreements) if agreements else 0.5

    support_values = [
        value
        for value in (
            _support_confidence(link, index)
            for link in links
            if link.relation == Relation.SUPPORTS
        )
        if value is not None
    ]
    if support_values:
        avg_confidence_supported = clamp(
            sum(support_values) / len(support_values) / 100.0, 0.0, 1.0
        )
    else:
        total_confidence = sum(j.confidence for j in session.judgments)
        avg_confidence_supported = clamp(
            total_confidence / max(1, len(session.judgments)) / 100.0, 0.0, 1.0
        )

    complexity = (len(session.principles) + len(session.links) * LINK_COMPLEXITY) / max(
        1, len(session.judgments) + len(session.principles)
    )
    parsimony_penalty = clamp(complexity, 0.0, 1.0)

    raw = (
        normalized.agreement_ratio * agreement_ratio
        + normalized.avg_confidence_supported * avg_confidence_supported
        - normalized.parsimony_penalty * parsimony_penalty
    )
    value = clamp(raw * 100.0, 0.0, 100.0)

    logger.debug(
        "Scored session %s: %.4f (%d valid of %d links)",
        session.id,
        value,
        len(links),
        len(session.links),
    )

    return ScoreResult(
        score=value,
        breakdown=CoherenceBreakdown(
            agreement_ratio=agreement_ratio,
            avg_confidence_supported=avg_confidence_supported,
            parsimony_penalty=parsimony_penalty,
            weights=normalized,
        ),
    )
