"""Revision assistant: optional model help with a deterministic fallback."""

from equilibrium.assist.assistant import RevisionAssistant
from equilibrium.assist.schemas import (
    DraftPrinciple,
    JudgmentSummary,
    RevisionProposal,
    validate_draft_principles,
    validate_proposals,
    validate_summary,
)
from equilibrium.assist.strategies import (
    DeterministicRevisionStrategy,
    ModelRevisionStrategy,
    RevisionStrategy,
    ValidatingRevisionStrategy,
    apply_proposal,
)

__all__ = [
    "DeterministicRevisionStrategy",
    "DraftPrinciple",
    "JudgmentSummary",
    "ModelRevisionStrategy",
    "RevisionAssistant",
    "RevisionProposal",
    "RevisionStrategy",
    "ValidatingRevisionStrategy",
    "apply_proposal",
    "validate_draft_principles",
    "validate_proposals",
    "validate_summary",
]
