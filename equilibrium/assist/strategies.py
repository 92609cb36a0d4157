"""Revision strategies for a single conflict set.

``DeterministicRevisionStrategy`` proposes revisions by simulating each one
with the engine and keeping the ones that raise the score.
``ModelRevisionStrategy`` asks a model for the same thing.
``ValidatingRevisionStrategy`` wraps a primary strategy with a timeout,
strict schema validation and a fallback; it is the only strategy callers
should hold directly.
"""

from __future__ import annotations

import concurrent.futures
import logging
import re
from typing import Any, Callable, Iterable, Optional, Protocol, TypeVar, Union, runtime_checkable

from equilibrium.assist.prompts import REVISIONS_SCHEMA_HINT, SUGGEST_REVISIONS, build_request
from equilibrium.assist.schemas import RevisionProposal, validate_proposals
from equilibrium.engine.actions import (
    REJECTED_CONFIDENCE_CAP,
    GeneralizePrinciple,
    LowerConfidence,
    RejectJudgment,
    RevisionAction,
    confidence_delta,
)
from equilibrium.engine.runner import run_coherence
from equilibrium.protocols import JsonModelAdapter, Retriever
from equilibrium.types import ActionType, ConflictSet, PrincipleScope, Session, clamp

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConflictInput = Union[ConflictSet, Iterable[str]]

RESCORE_TIMEOUT_MS = 500
DEFAULT_LOWER_DELTA = 15
LOWER_CONFIDENCE_ABOVE = 20
REJECT_AT_OR_ABOVE = 50
DEFAULT_MODEL_TIMEOUT_S = 10.0

# Base confidence estimate per action, nudged by the simulated effect.
_CONFIDENCE_BASE = {
    ActionType.LOWER_CONFIDENCE: 0.5,
    ActionType.REJECT_JUDGMENT: 0.45,
    ActionType.GENERALIZE_PRINCIPLE: 0.52,
}

_DELTA_PATTERN = re.compile(r"-\s*(\d{1,2})")


def split_conflict_ids(session: Session, conflict: ConflictInput) -> tuple[list[str], list[str]]:
    """Split conflict ids into (judgment ids, principle ids); unknown ids are dropped."""
    ids = conflict.ids if isinstance(conflict, ConflictSet) else tuple(conflict)
    judgment_ids = [i for i in ids if session.find_judgment(i) is not None]
    principle_ids = [i for i in ids if session.find_principle(i) is not None]
    return judgment_ids, principle_ids


def run_with_timeout(fn: Callable[[], T], timeout_s: float) -> T:
    """Run ``fn`` on a worker thread and wait at most ``timeout_s`` seconds.

    A call that overruns keeps running in the background; its result is
    discarded.

    Raises:
        concurrent.futures.TimeoutError: If ``fn`` does not finish in time.
    """
    pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = pool.submit(fn)
        return future.result(timeout=timeout_s)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def action_for_proposal(proposal: RevisionProposal) -> RevisionAction:
    if proposal.action_type is ActionType.LOWER_CONFIDENCE:
        match = _DELTA_PATTERN.search(proposal.change)
        delta = int(match.group(1)) if match else DEFAULT_LOWER_DELTA
        return LowerConfidence(judgment_id=proposal.target_id, delta=delta)
    if proposal.action_type is ActionType.REJECT_JUDGMENT:
        return RejectJudgment(judgment_id=proposal.target_id)
    return GeneralizePrinciple(principle_id=proposal.target_id)


def apply_proposal(session: Session, proposal: RevisionProposal) -> Session:
    """Apply an accepted proposal. Unknown targets leave the session unchanged."""
    return action_for_proposal(proposal).apply(session)


@runtime_checkable
class RevisionStrategy(Protocol):
    """Proposes revisions that should resolve one conflict set."""

    def propose(
        self, session: Session, conflict_set: ConflictInput, max_suggestions: int
    ) -> list[RevisionProposal]: ...


class DeterministicRevisionStrategy:
    """Simulate each applicable action and keep the ones that help."""

    def _evaluate(
        self,
        session: Session,
        baseline: float,
        action: RevisionAction,
        change: str,
        rationale: str,
    ) -> RevisionProposal:
        predicted = run_coherence(
            action.apply(session), timeout_ms=RESCORE_TIMEOUT_MS
        ).coherence_score
        delta = predicted - baseline
        return RevisionProposal(
            action_type=action.action_type,
            target_id=action.target_ids[0],
            change=change,
            rationale=rationale,
            expected_effect_delta=round(delta, 2),
            confidence_estimate=round(
                clamp(_CONFIDENCE_BASE[action.action_type] + delta / 100, 0.05, 0.99), 2
            ),
        )

    def propose(
        self, session: Session, conflict_set: ConflictInput, max_suggestions: int
    ) -> list[RevisionProposal]:
        judgment_ids, principle_ids = split_conflict_ids(session, conflict_set)
        baseline = run_coherence(session, timeout_ms=RESCORE_TIMEOUT_MS).coherence_score
        candidates = []

        for judgment_id in judgment_ids:
            judgment = session.find_judgment(judgment_id)
            if judgment.confidence > LOWER_CONFIDENCE_ABOVE:
                drop = confidence_delta(judgment.id)
                candidates.append(
                    self._evaluate(
                        session,
                        baseline,
                        LowerConfidence(judgment_id=judgment.id, delta=drop),
                        f"confidence:-{drop}",
                        f"Lowering confidence in {judgment.id} can reduce conflict pressure "
                        "while keeping the judgment in play for further deliberation.",
                    )
                )
            if judgment.confidence >= REJECT_AT_OR_ABOVE:
                candidates.append(
                    self._evaluate(
                        session,
                        baseline,
                        RejectJudgment(judgment_id=judgment.id),
                        f"rejected:true;confidence:{REJECTED_CONFIDENCE_CAP}",
                        f"Temporarily rejecting {judgment.id} tests whether the conflict is "
                        "driven by a brittle commitment rather than stable principles.",
                    )
                )

        for principle_id in principle_ids:
            principle = session.find_principle(principle_id)
            if principle.scope is not PrincipleScope.UNIVERSAL:
                continue
            candidates.append(
                self._evaluate(
                    session,
                    baseline,
                    GeneralizePrinciple(principle_id=principle.id),
                    "scope:defeasible;text_append:unless strong countervailing reasons apply",
                    f"Generalizing {principle.id} from universal to defeasible can preserve "
                    "explanatory value while reducing direct contradiction with "
                    "high-confidence judgments.",
                )
            )

        helpful = [c for c in candidates if c.expected_effect_delta > 0]
        helpful.sort(
            key=lambda c: (-c.expected_effect_delta, f"{c.action_type.value}:{c.target_id}")
        )
        logger.debug(
            "Deterministic strategy kept %d of %d candidates", len(helpful), len(candidates)
        )
        return helpful[: max(1, max_suggestions)]


class ModelRevisionStrategy:
    """Ask a JSON model adapter for revision proposals."""

    def __init__(self, adapter: JsonModelAdapter, retriever: Optional[Retriever] = None) -> None:
        self.adapter = adapter
        self.retriever = retriever

    def propose(
        self, session: Session, conflict_set: ConflictInput, max_suggestions: int
    ) -> list[RevisionProposal]:
        judgment_ids, principle_ids = split_conflict_ids(session, conflict_set)
        snippets: list[str] = []
        if self.retriever is not None:
            query = " ".join(
                [session.find_judgment(i).text for i in judgment_ids]
                + [session.find_principle(i).text for i in principle_ids]
            )
            snippets = self.retriever.retrieve(query, 3)

        request = build_request(
            SUGGEST_REVISIONS,
            {
                "conflictSet": {"judgmentIds": judgment_ids, "principleIds": principle_ids},
                "maxSuggestions": max_suggestions,
            },
            snippets,
            REVISIONS_SCHEMA_HINT,
            conflict_ids=judgment_ids + principle_ids,
            max_suggestions=max_suggestions,
        )
        return validate_proposals(self.adapter.generate_json(request))


class ValidatingRevisionStrategy:
    """Run ``primary`` with a timeout and validation; fall back on any failure."""

    def __init__(
        self,
        primary: RevisionStrategy,
        fallback: Optional[RevisionStrategy] = None,
        timeout_s: float = DEFAULT_MODEL_TIMEOUT_S,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or DeterministicRevisionStrategy()
        self.timeout_s = timeout_s

    @staticmethod
    def _revalidate(output: Any) -> list[RevisionProposal]:
        if not isinstance(output, list):
            raise ValueError(f"Expected a list of proposals, got {type(output).__name__}")
        proposals = [p for p in output if isinstance(p, RevisionProposal)]
        raw = [p for p in output if not isinstance(p, RevisionProposal)]
        return proposals + validate_proposals(raw)

    def propose(
        self, session: Session, conflict_set: ConflictInput, max_suggestions: int
    ) -> list[RevisionProposal]:
        limit = max(1, max_suggestions)
        if isinstance(conflict_set, ConflictSet):
            conflict_ids: ConflictInput = conflict_set
        else:
            conflict_ids = tuple(conflict_set)

        try:
            proposals = self._revalidate(
                run_with_timeout(
                    lambda: self.primary.propose(session, conflict_ids, limit), self.timeout_s
                )
            )
            if proposals:
                return proposals[:limit]
            logger.warning("Primary revision strategy returned no valid proposals, falling back")
        except concurrent.futures.TimeoutError:
            logger.warning(
                "Primary revision strategy timed out after %.1fs, falling back", self.timeout_s
            )
        except Exception as e:
            logger.warning("Primary revision strategy failed (%s), falling back", e)

        return self._revalidate(self.fallback.propose(session, conflict_ids, limit))[:limit]
