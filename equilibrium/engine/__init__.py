"""The coherence engine.

Pure functions over a Session value: nothing here persists, calls the
network or keeps state between calls.
"""

from equilibrium.engine.actions import (
    GeneralizePrinciple,
    LowerConfidence,
    RejectJudgment,
    RevisionAction,
    stable_hash,
)
from equilibrium.engine.conflicts import detect_conflicts
from equilibrium.engine.runner import run_coherence
from equilibrium.engine.scoring import ScoreResult, normalize_weights, score
from equilibrium.engine.signals import judgment_signal, principle_signal
from equilibrium.engine.simulation import simulate_patch
from equilibrium.engine.suggestions import generate_suggestions

__all__ = [
    "GeneralizePrinciple",
    "LowerConfidence",
    "RejectJudgment",
    "RevisionAction",
    "ScoreResult",
    "detect_conflicts",
    "generate_suggestions",
    "judgment_signal",
    "normalize_weights",
    "principle_signal",
    "run_coherence",
    "score",
    "simulate_patch",
    "stable_hash",
]
