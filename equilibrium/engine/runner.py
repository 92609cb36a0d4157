"""run_coherence: score, conflicts and suggestions in one report."""

from __future__ import annotations

import logging
import time
from typing import Optional

from equilibrium.engine.conflicts import detect_conflicts
from equilibrium.engine.scoring import WeightsInput, normalize_weights, score
from equilibrium.engine.suggestions import (
    DEFAULT_SUGGESTION_LIMIT,
    Clock,
    generate_suggestions,
)
from equilibrium.types import CoherenceReport, Session, clamp

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 2000
MIN_TIMEOUT_MS = 50
MAX_TIMEOUT_MS = 10000


def clamp_timeout_ms(timeout_ms: Optional[float]) -> float:
    if timeout_ms is None:
        return float(DEFAULT_TIMEOUT_MS)
    return clamp(timeout_ms, MIN_TIMEOUT_MS, MAX_TIMEOUT_MS)


def run_coherence(
    session: Session,
    weights: WeightsInput = None,
    timeout_ms: Optional[float] = None,
    *,
    clock: Clock = time.monotonic,
    suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
) -> CoherenceReport:
    """Run the full engine over one session snapshot.

    The score and the conflict sets are always complete. Suggestions are
    generated only while the soft time budget lasts; running out of time
    sets ``timed_out`` on the report instead of raising.
    """
    started = clock()
    budget_ms = clamp_timeout_ms(timeout_ms)
    deadline = started + budget_ms / 1000.0
    normalized = normalize_weights(weights)

    baseline = score(session, normalized)
    conflicts = detect_conflicts(session)

    timed_out = clock() > deadline
    if timed_out:
        logger.warning(
            "Coherence budget of %.0fms exhausted before suggestions for session %s",
            budget_ms,
            session.id,
        )
        suggestions = []
    else:
        suggestions = generate_suggestions(
            session,
            baseline.score,
            normalized,
            deadline=deadline,
            clock=clock,
            limit=suggestion_limit,
        )
        if clock() > deadline:
            timed_out = True

    return CoherenceReport(
        coherence_score=baseline.score,
        breakdown=baseline.breakdown,
        minimal_conflicts=tuple(conflicts),
        suggestions=tuple(suggestions),
        timed_out=timed_out,
        duration_ms=(clock() - started) * 1000.0,
    )
