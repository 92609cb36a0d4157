"""What-if suggestion generator.

Enumerates single-target revision candidates, simulates and re-scores each
one with the baseline's weights, keeps the ones that improve coherence and
ranks them in a total, deterministic order:

1. effect estimate, descending (ties within 1e-9)
2. action priority: lower_confidence, reject_judgment, generalize_principle
3. target ids joined with ``|``, ascending

The deadline is polled between candidates only. Whatever was evaluated
before it passed is still ranked and returned.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

from equilibrium.engine.actions import (
    GeneralizePrinciple,
    LowerConfidence,
    RejectJudgment,
    RevisionAction,
)
from equilibrium.engine.scoring import WeightsInput, normalize_weights, score
from equilibrium.engine.simulation import simulate_patch
from equilibrium.types import (
    ACTION_PRIORITY,
    ActionType,
    PrincipleScope,
    Session,
    SessionPatch,
    Suggestion,
)

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_LIMIT = 3
EFFECT_TIE_TOLERANCE = 1e-9

# Confidence thresholds for proposing a revision of a judgment.
LOWER_CONFIDENCE_MIN = 20
REJECT_MIN = 45

_ACTION_PHRASES = {
    ActionType.LOWER_CONFIDENCE: (
        "This revision reduces confidence in the target judgment by a modest, controlled amount"
    ),
    ActionType.REJECT_JUDGMENT: (
        "This revision marks a target judgment as rejected for the current equilibrium cycle"
    ),
    ActionType.GENERALIZE_PRINCIPLE: (
        "This revision weakens a universal principle into a defeasible, "
        "context-sensitive formulation"
    ),
}

Clock = Callable[[], float]


@dataclass(frozen=True)
class Candidate:
    """One evaluated revision."""

    action: RevisionAction
    patch: SessionPatch
    predicted_coherence: float
    effect_estimate: float

    @property
    def action_type(self) -> ActionType:
        return self.action.action_type

    @property
    def target_key(self) -> str:
        return "|".join(self.action.target_ids)


def explain(
    action_type: ActionType,
    target_ids: List[str],
    baseline: float,
    predicted: float,
    effect: float,
) -> str:
    """Templated, deterministic explanation for a suggestion."""
    ids = ", ".join(target_ids)
    return (
        f"{_ACTION_PHRASES[action_type]}, focusing on {ids}. "
        f"The engine predicts a coherence increase from {baseline:.2f} to {predicted:.2f} "
        f"(delta +{effect:.2f}), primarily by reducing direct contradiction pressure while "
        "preserving as much original structure as possible. The tradeoff is that explanatory "
        "sharpness can decline: lower confidence, rejection and broader principles may fit "
        "more cases but commit less strongly. Treat this as a reversible test step, then "
        "re-run coherence to verify whether the local gain remains robust under additional "
        "links and judgments."
    )


def candidate_actions(session: Session) -> Iterator[RevisionAction]:
    """Revision candidates in evaluation order: judgments first, then principles."""
    for judgment in session.judgments:
        if judgment.rejected:
            continue
        if judgment.confidence >= LOWER_CONFIDENCE_MIN:
            yield LowerConfidence.for_judgment(judgment)
        if judgment.confidence >= REJECT_MIN:
            yield RejectJudgment(judgment.id)

    for principle in session.principles:
        if principle.scope == PrincipleScope.UNIVERSAL:
            yield GeneralizePrinciple(principle.id)


def _compare(a: Candidate, b: Candidate) -> int:
    if abs(b.effect_estimate - a.effect_estimate) > EFFECT_TIE_TOLERANCE:
        return -1 if a.effect_estimate > b.effect_estimate else 1
    priority_a = ACTION_PRIORITY[a.action_type]
    priority_b = ACTION_PRIORITY[b.action_type]
    if priority_a != priority_b:
        return priority_a - priority_b
    if a.target_key != b.target_key:
        return -1 if a.target_key < b.target_key else 1
    return 0


def rank_candidates(candidates: List[Candidate]) -> List[Candidate]:
    """Drop non-improvements and sort the rest in suggestion order."""
    improving = [c for c in candidates if c.effect_estimate > 0]
    return sorted(improving, key=functools.cmp_to_key(_compare))


def evaluate_candidates(
    session: Session,
    baseline_score: float,
    weights: WeightsInput,
    deadline: Optional[float] = None,
    clock: Clock = time.monotonic,
) -> List[Candidate]:
    """Simulate and score every candidate until the deadline passes."""
    normalized = normalize_weights(weights)
    evaluated: List[Candidate] = []

    for action in candidate_actions(session):
        if deadline is not None and clock() > deadline:
            logger.debug(
                "Suggestion deadline reached after %d candidates for session %s",
                len(evaluated),
                session.id,
            )
            break
        patch = action.patch(session)
        if patch is None:
            continue
        predicted = score(simulate_patch(session, patch), normalized).score
        evaluated.append(
            Candidate(
                action=action,
                patch=patch,
                predicted_coherence=predicted,
                effect_estimate=predicted - baseline_score,
            )
        )

    return evaluated


def generate_suggestions(
    session: Session,
    baseline_score: float,
    weights: WeightsInput,
    deadline: Optional[float] = None,
    clock: Clock = time.monotonic,
    limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> List[Suggestion]:
    """Propose up to ``limit`` ranked revisions that raise the score."""
    candidates = evaluate_candidates(session, baseline_score, weights, deadline, clock)
    ranked = rank_candidates(candidates)[: max(0, limit)]

    suggestions = []
    for rank, candidate in enumerate(ranked, start=1):
        target_ids = list(candidate.action.target_ids)
        suggestions.append(
            Suggestion(
                id=f"sugg_{rank}_{candidate.action_type.value}",
                title=candidate.action.title,
                action_type=candidate.action_type,
                target_ids=tuple(target_ids),
                explanation=explain(
                    candidate.action_type,
                    target_ids,
                    baseline_score,
                    candidate.predicted_coherence,
                    candidate.effect_estimate,
                ),
                effect_estimate=candidate.effect_estimate,
                predicted_coherence=candidate.predicted_coherence,
                resulting_patch=candidate.patch,
            )
        )

    logger.debug(
        "Session %s: %d candidates, %d improving, %d returned",
        session.id,
        len(candidates),
        sum(1 for c in candidates if c.effect_estimate > 0),
        len(suggestions),
    )
    return suggestions
