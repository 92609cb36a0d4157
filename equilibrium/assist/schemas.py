"""Pydantic models for assistant output.

Everything a model returns is untrusted. These schemas bound every string,
clamp every number and reject unknown enum values; the ``validate_*``
helpers drop invalid items instead of failing the whole batch.
"""

import html
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from equilibrium.types import ActionType, PrincipleScope, clamp
from equilibrium.validation import escape_text

logger = logging.getLogger(__name__)

MAX_TARGET_ID_LENGTH = 64
MAX_CHANGE_LENGTH = 180
MAX_RATIONALE_LENGTH = 460
MAX_SUMMARY_LENGTH = 480
MAX_ASSUMPTION_LENGTH = 180
MAX_TITLE_LENGTH = 96
MAX_STATEMENT_LENGTH = 420

MAX_PROPOSALS = 12
MAX_ASSUMPTIONS = 6
MAX_DRAFT_PRINCIPLES = 8

_WHITESPACE = re.compile(r"\s+")


def clean_text(value: Any, max_length: int) -> str:
    """Collapse whitespace, HTML-escape and truncate.

    Already-escaped input is unescaped first, so cleaning twice is a no-op.
    """
    if value is None:
        return ""
    return escape_text(html.unescape(_WHITESPACE.sub(" ", str(value))), max_length)


def _bounded_number(value: Any, low: float, high: float) -> float:
    if value is None:
        value = 0
    if isinstance(value, bool):
        value = int(value)
    return round(clamp(value, low, high), 2)


# =============================================================================
# Revision proposals
# =============================================================================


class RevisionProposal(BaseModel):
    """One revision proposed for a conflict set."""

    model_config = ConfigDict(frozen=True)

    action_type: ActionType
    target_id: str = Field(..., min_length=1, max_length=MAX_TARGET_ID_LENGTH)
    change: str = Field(..., min_length=1, max_length=MAX_CHANGE_LENGTH)
    rationale: str = Field(..., min_length=1, max_length=MAX_RATIONALE_LENGTH)
    expected_effect_delta: float = 0.0
    confidence_estimate: float = 0.0

    @field_validator("target_id", mode="before")
    @classmethod
    def _clean_target(cls, v: Any) -> str:
        return clean_text(v, MAX_TARGET_ID_LENGTH)

    @field_validator("change", mode="before")
    @classmethod
    def _clean_change(cls, v: Any) -> str:
        return clean_text(v, MAX_CHANGE_LENGTH)

    @field_validator("rationale", mode="before")
    @classmethod
    def _clean_rationale(cls, v: Any) -> str:
        return clean_text(v, MAX_RATIONALE_LENGTH)

    @field_validator("expected_effect_delta", mode="before")
    @classmethod
    def _clamp_delta(cls, v: Any) -> float:
        return _bounded_number(v, -100.0, 100.0)

    @field_validator("confidence_estimate", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        return _bounded_number(v, 0.0, 1.0)


# =============================================================================
# Summaries and draft principles
# =============================================================================


class JudgmentSummary(BaseModel):
    """A short restatement of a judgment and the assumptions it leans on."""

    summary: str = Field(..., min_length=1, max_length=MAX_SUMMARY_LENGTH)
    assumptions: list[str] = Field(default_factory=list, max_length=MAX_ASSUMPTIONS)

    @field_validator("summary", mode="before")
    @classmethod
    def _clean_summary(cls, v: Any) -> str:
        return clean_text(v, MAX_SUMMARY_LENGTH)

    @field_validator("assumptions", mode="before")
    @classmethod
    def _clean_assumptions(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        cleaned = [clean_text(item, MAX_ASSUMPTION_LENGTH) for item in v]
        return [item for item in cleaned if item][:MAX_ASSUMPTIONS]


class DraftPrinciple(BaseModel):
    """A candidate principle drafted from a group of judgments."""

    id: str | None = None
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    statement: str = Field(..., min_length=1, max_length=MAX_STATEMENT_LENGTH)
    scope: PrincipleScope = PrincipleScope.CONTEXTUAL
    supporting_judgment_ids: list[str] = Field(..., min_length=1)

    @field_validator("id", mode="before")
    @classmethod
    def _clean_id(cls, v: Any) -> str | None:
        if not v:
            return None
        return clean_text(v, MAX_TARGET_ID_LENGTH) or None

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, v: Any) -> str:
        return clean_text(v, MAX_TITLE_LENGTH)

    @field_validator("statement", mode="before")
    @classmethod
    def _clean_statement(cls, v: Any) -> str:
        return clean_text(v, MAX_STATEMENT_LENGTH)

    @field_validator("scope", mode="before")
    @classmethod
    def _coerce_scope(cls, v: Any) -> str:
        if v in (PrincipleScope.UNIVERSAL.value, PrincipleScope.DEFEASIBLE.value):
            return v
        return PrincipleScope.CONTEXTUAL.value

    @field_validator("supporting_judgment_ids", mode="before")
    @classmethod
    def _clean_supporting(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        cleaned = [clean_text(item, MAX_TARGET_ID_LENGTH) for item in v]
        return [item for item in cleaned if item]


# =============================================================================
# Batch validation
# =============================================================================


def _camel_to_snake(record: dict) -> dict:
    out = dict(record)
    if "supportingJudgmentIds" in out and "supporting_judgment_ids" not in out:
        out["supporting_judgment_ids"] = out.pop("supportingJudgmentIds")
    return out


def validate_proposals(raw: Any) -> list[RevisionProposal]:
    """Validate a raw proposal list; invalid items are dropped.

    Raises:
        ValueError: If ``raw`` is not a list.
    """
    if not isinstance(raw, list):
        raise ValueError("Invalid suggestions response: expected an array.")

    proposals = []
    for item in raw[:MAX_PROPOSALS]:
        if not isinstance(item, dict):
            continue
        try:
            proposals.append(RevisionProposal.model_validate(item))
        except ValidationError as e:
            logger.debug("Dropping invalid revision proposal: %s", e.error_count())
    return proposals


def validate_summary(raw: Any) -> JudgmentSummary:
    """Validate a raw summary object.

    Raises:
        ValueError: If the summary text is missing (pydantic's ValidationError
            is a ValueError).
    """
    if not isinstance(raw, dict):
        raise ValueError("Invalid summary response: expected an object.")
    return JudgmentSummary.model_validate(raw)


def validate_draft_principles(raw: Any) -> list[DraftPrinciple]:
    """Validate a raw draft-principle list; invalid items are dropped.

    Raises:
        ValueError: If ``raw`` is not a list.
    """
    if not isinstance(raw, list):
        raise ValueError("Invalid principles response: expected an array.")

    drafts = []
    for item in raw[:MAX_DRAFT_PRINCIPLES]:
        if not isinstance(item, dict):
            continue
        try:
            drafts.append(DraftPrinciple.model_validate(_camel_to_snake(item)))
        except ValidationError as e:
            logger.debug("Dropping invalid draft principle: %s", e.error_count())
    return drafts
