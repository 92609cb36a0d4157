"""RevisionAssistant: the optional model-backed helper.

Every operation has a deterministic path. The model is consulted only
when ``send_to_model`` is on and an adapter is available; whatever it
returns goes through the same schema validation as the fallback output.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Callable, Optional, Sequence, TypeVar

from equilibrium.assist import deterministic
from equilibrium.assist.prompts import (
    GENERATE_PRINCIPLES,
    PRINCIPLES_SCHEMA_HINT,
    SUMMARIZE_JUDGMENT,
    SUMMARY_SCHEMA_HINT,
    build_request,
)
from equilibrium.assist.schemas import (
    DraftPrinciple,
    JudgmentSummary,
    RevisionProposal,
    clean_text,
    validate_draft_principles,
    validate_summary,
)
from equilibrium.assist.strategies import (
    ConflictInput,
    DeterministicRevisionStrategy,
    ModelRevisionStrategy,
    RevisionStrategy,
    ValidatingRevisionStrategy,
    apply_proposal,
    run_with_timeout,
)
from equilibrium.config import Settings, get_settings
from equilibrium.protocols import GenerateJsonRequest, JsonModelAdapter, Retriever, ValidationError
from equilibrium.retrieval import retriever_for_session
from equilibrium.types import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_JUDGMENT_TEXT = 1200
MAX_ID_LENGTH = 64
MIN_SUGGESTIONS = 1
MAX_SUGGESTIONS = 6


def default_adapter(settings: Settings) -> Optional[JsonModelAdapter]:
    """Build a JSON adapter from the auto-configured model, if any."""
    from equilibrium.models.auto import auto_configure_model
    from equilibrium.models.json_adapter import ModelJsonAdapter

    try:
        model = auto_configure_model(settings)
    except ValueError as e:
        logger.warning("Model auto-configuration failed: %s", e)
        return None
    return ModelJsonAdapter(model) if model is not None else None


class RevisionAssistant:
    """Summaries, principle drafts and revision proposals for one session at a time."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        adapter: Optional[JsonModelAdapter] = None,
        retriever: Optional[Retriever] = None,
    ) -> None:
        self.settings = settings or get_settings()
        if adapter is None and self.settings.send_to_model:
            adapter = default_adapter(self.settings)
        self.adapter = adapter
        self._retriever = retriever
        # session id -> (updated_at, retriever), least recently used first
        self._indexed: OrderedDict[str, tuple[str, Retriever]] = OrderedDict()

    @property
    def model_enabled(self) -> bool:
        return self.settings.send_to_model and self.adapter is not None

    def _retriever_for(self, session: Session) -> Retriever:
        if self._retriever is not None:
            return self._retriever
        cached = self._indexed.get(session.id)
        if cached is not None and cached[0] == session.updated_at:
            self._indexed.move_to_end(session.id)
            return cached[1]
        retriever = retriever_for_session(
            session,
            max_chars=self.settings.retrieval_chunk_chars,
            overlap_chars=self.settings.retrieval_overlap_chars,
        )
        self._indexed[session.id] = (session.updated_at, retriever)
        self._indexed.move_to_end(session.id)
        while len(self._indexed) > max(1, self.settings.retriever_cache_size):
            self._indexed.popitem(last=False)
        return retriever

    def forget(self, session_id: str) -> None:
        """Drop the cached retrieval index for a deleted session."""
        self._indexed.pop(session_id, None)

    def _with_optional_model(
        self,
        request: Callable[[], GenerateJsonRequest],
        validate: Callable[[Any], T],
        fallback: Callable[[], Any],
        name: str,
    ) -> T:
        if self.model_enabled:
            try:
                raw = run_with_timeout(
                    lambda: self.adapter.generate_json(request()), self.settings.model_timeout_s
                )
                return validate(raw)
            except Exception as e:
                logger.warning("Model %s failed (%s), using deterministic fallback", name, e)
        return validate(fallback())

    # === Operations ===

    def summarize_judgment(self, session: Session, judgment_id: str, text: str) -> JudgmentSummary:
        """Summarize a judgment's text and list the assumptions it leans on.

        Raises:
            ValidationError: If the id or text is empty.
        """
        judgment_id = clean_text(judgment_id, MAX_ID_LENGTH)
        text = clean_text(text, MAX_JUDGMENT_TEXT)
        if not judgment_id or not text:
            raise ValidationError("judgment_id and text are required")

        snippets = self._retriever_for(session).retrieve(text, 2)
        return self._with_optional_model(
            lambda: build_request(
                SUMMARIZE_JUDGMENT,
                {"judgmentId": judgment_id, "text": text},
                snippets,
                SUMMARY_SCHEMA_HINT,
                judgment_id=judgment_id,
            ),
            validate_summary,
            lambda: deterministic.summarize_judgment(judgment_id, text, snippets),
            "summarize_judgment",
        )

    def generate_principles(
        self, session: Session, judgment_ids: Sequence[str]
    ) -> list[DraftPrinciple]:
        """Draft candidate principles from the selected judgments.

        Raises:
            ValidationError: If no id matches a judgment in the session.
        """
        wanted = {clean_text(i, MAX_ID_LENGTH) for i in judgment_ids} - {""}
        selected = [j for j in session.judgments if j.id in wanted]
        if not selected:
            raise ValidationError("No matching judgments found for provided ids")

        query = " ".join(j.text for j in selected)
        snippets = self._retriever_for(session).retrieve(query, 3)
        ids = [j.id for j in selected]
        return self._with_optional_model(
            lambda: build_request(
                GENERATE_PRINCIPLES,
                {"judgmentIds": ids},
                snippets,
                PRINCIPLES_SCHEMA_HINT,
                judgment_ids=ids,
            ),
            validate_draft_principles,
            lambda: deterministic.draft_principles(selected, snippets),
            "generate_principles",
        )

    def strategy(self, session: Session) -> RevisionStrategy:
        """The revision strategy for this session's configuration.

        Deterministic proposals are built as ``RevisionProposal`` instances,
        so they are schema-checked without the validating wrapper.
        """
        if not self.model_enabled:
            return DeterministicRevisionStrategy()
        return ValidatingRevisionStrategy(
            ModelRevisionStrategy(self.adapter, self._retriever_for(session)),
            DeterministicRevisionStrategy(),
            timeout_s=self.settings.model_timeout_s,
        )

    def suggest_revisions(
        self,
        session: Session,
        conflict_set: ConflictInput,
        max_suggestions: Optional[int] = None,
    ) -> list[RevisionProposal]:
        """Propose revisions that should resolve one conflict set."""
        limit = int(
            max(
                MIN_SUGGESTIONS,
                min(MAX_SUGGESTIONS, max_suggestions or self.settings.max_suggestions),
            )
        )
        return self.strategy(session).propose(session, conflict_set, limit)

    def apply(self, session: Session, proposal: RevisionProposal) -> Session:
        return apply_proposal(session, proposal)
