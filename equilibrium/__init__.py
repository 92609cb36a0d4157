"""
equilibrium - a coherence engine for wide reflective equilibrium.

Scores a set of considered judgments, candidate principles and the
relations between them, finds small conflicting sets and proposes the
revisions that would raise coherence most.
"""

from .engine import detect_conflicts, run_coherence, score, simulate_patch
from .store import InMemorySessionStore, SessionService
from .types import (
    CoherenceReport,
    CoherenceWeights,
    Judgment,
    Link,
    Principle,
    Session,
    SessionPatch,
)

try:
    from importlib.metadata import version

    __version__ = version("equilibrium-wre")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "CoherenceReport",
    "CoherenceWeights",
    "InMemorySessionStore",
    "Judgment",
    "Link",
    "Principle",
    "Session",
    "SessionPatch",
    "SessionService",
    "detect_conflicts",
    "run_coherence",
    "score",
    "simulate_patch",
]
