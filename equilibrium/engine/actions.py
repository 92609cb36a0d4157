"""Revision actions.

The three revisions the engine knows how to propose, as a closed set of
variants. Each variant builds a single-entity ``SessionPatch`` against a
session snapshot; both the suggestion generator and the assistant go
through these, so an accepted suggestion is applied exactly the way it was
simulated.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Tuple, Union

from equilibrium.engine.simulation import simulate_patch
from equilibrium.types import (
    ActionType,
    Judgment,
    Principle,
    PrincipleScope,
    Session,
    SessionPatch,
    clamp,
    utc_now,
)

GENERALIZED_QUALIFIER = "(generalized: unless strong countervailing reasons apply)"

# Rejected judgments keep at most this much confidence.
REJECTED_CONFIDENCE_CAP = 40

GENERALIZE_PLAUSIBILITY_FACTOR = 0.95


def stable_hash(value: str) -> int:
    """32-bit rolling hash, ``h = h * 31 + unit``, over UTF-16 code units.

    A pure function of the string so per-entity deltas vary between
    entities but never between runs.
    """
    h = 0
    encoded = value.encode("utf-16-le")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h


def confidence_delta(judgment_id: str) -> int:
    """Per-judgment confidence drop in [10, 20]."""
    return 10 + stable_hash(judgment_id) % 11


def _replace_judgment(session: Session, updated: Judgment) -> Tuple[Judgment, ...]:
    return tuple(updated if j.id == updated.id else j for j in session.judgments)


def _replace_principle(session: Session, updated: Principle) -> Tuple[Principle, ...]:
    return tuple(updated if p.id == updated.id else p for p in session.principles)


@dataclass(frozen=True)
class LowerConfidence:
    """Lower one judgment's confidence by ``delta`` points."""

    judgment_id: str
    delta: float

    action_type = ActionType.LOWER_CONFIDENCE

    @classmethod
    def for_judgment(cls, judgment: Judgment) -> "LowerConfidence":
        return cls.for_judgment_id(judgment.id)

    @classmethod
    def for_judgment_id(cls, judgment_id: str) -> "LowerConfidence":
        return cls(judgment_id=judgment_id, delta=confidence_delta(judgment_id))

    @property
    def target_ids(self) -> Tuple[str, ...]:
        return (self.judgment_id,)

    @property
    def title(self) -> str:
        return f"Lower confidence for {self.judgment_id}"

    def patch(self, session: Session) -> Optional[SessionPatch]:
        target = session.find_judgment(self.judgment_id)
        if target is None:
            return None
        updated = replace(
            target,
            confidence=clamp(target.confidence - self.delta, 0.0, 100.0),
            updated_at=utc_now(),
        )
        return SessionPatch(judgments=_replace_judgment(session, updated))

    def apply(self, session: Session) -> Session:
        return _apply(self, session)


@dataclass(frozen=True)
class RejectJudgment:
    """Mark one judgment rejected for the current equilibrium cycle."""

    judgment_id: str

    action_type = ActionType.REJECT_JUDGMENT

    @property
    def target_ids(self) -> Tuple[str, ...]:
        return (self.judgment_id,)

    @property
    def title(self) -> str:
        return f"Temporarily reject {self.judgment_id}"

    def patch(self, session: Session) -> Optional[SessionPatch]:
        target = session.find_judgment(self.judgment_id)
        if target is None:
            return None
        updated = replace(
            target,
            rejected=True,
            confidence=min(target.confidence, REJECTED_CONFIDENCE_CAP),
            updated_at=utc_now(),
        )
        return SessionPatch(judgments=_replace_judgment(session, updated))

    def apply(self, session: Session) -> Session:
        return _apply(self, session)


@dataclass(frozen=True)
class GeneralizePrinciple:
    """Weaken a principle into a defeasible formulation."""

    principle_id: str

    action_type = ActionType.GENERALIZE_PRINCIPLE

    @property
    def target_ids(self) -> Tuple[str, ...]:
        return (self.principle_id,)

    @property
    def title(self) -> str:
        return f"Generalize {self.principle_id}"

    def patch(self, session: Session) -> Optional[SessionPatch]:
        target = session.find_principle(self.principle_id)
        if target is None:
            return None
        text = target.text
        if GENERALIZED_QUALIFIER not in text:
            text = f"{text} {GENERALIZED_QUALIFIER}"
        updated = replace(
            target,
            scope=PrincipleScope.DEFEASIBLE,
            text=text,
            plausibility=clamp(target.plausibility * GENERALIZE_PLAUSIBILITY_FACTOR, 0.0, 1.0),
            updated_at=utc_now(),
        )
        return SessionPatch(principles=_replace_principle(session, updated))

    def apply(self, session: Session) -> Session:
        return _apply(self, session)


RevisionAction = Union[LowerConfidence, RejectJudgment, GeneralizePrinciple]


def _apply(action: RevisionAction, session: Session) -> Session:
    """Simulate the action's patch; an unknown target leaves the session as is."""
    patch = action.patch(session)
    if patch is None:
        return session
    return simulate_patch(session, patch)
