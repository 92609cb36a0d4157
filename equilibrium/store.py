"""Session persistence and the session service.

``InMemorySessionStore`` is the reference ``SessionStore``: a dict behind a
lock with last-write-wins ``put``. ``SessionService`` is the only writer of
the revision log; every edit goes through it as a read, a pure transform
and a ``put``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Dict, List, Optional

from equilibrium.config import Settings, get_settings
from equilibrium.engine.actions import (
    GeneralizePrinciple,
    LowerConfidence,
    RejectJudgment,
    RevisionAction,
)
from equilibrium.engine.runner import run_coherence
from equilibrium.engine.scoring import WeightsInput
from equilibrium.engine.simulation import simulate_patch
from equilibrium.protocols import SessionNotFoundError, SessionStore, ValidationError
from equilibrium.types import (
    ActionType,
    CoherenceReport,
    Session,
    make_id,
    utc_now,
)
from equilibrium.validation import (
    escape_text,
    judgment_from_input,
    link_from_input,
    patch_from_input,
    principle_from_input,
)

logger = logging.getLogger(__name__)

# Revision log operations
SESSION_CREATED = "SESSION_CREATED"
ADD_JUDGMENT = "ADD_JUDGMENT"
ADD_PRINCIPLE = "ADD_PRINCIPLE"
ADD_LINK = "ADD_LINK"
REMOVE_ENTITY = "REMOVE_ENTITY"
RUN_COHERENCE = "RUN_COHERENCE"
APPLY_SUGGESTION = "APPLY_SUGGESTION"

DEFAULT_ACTOR = "anonymous_user"
ENGINE_ACTOR = "engine_runner"


class InMemorySessionStore:
    """Process-local session store.

    The lock only protects the dict. Two requests that read, edit and put
    the same session still race; the later ``put`` wins.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None


def action_for(action_type: ActionType, target_id: str) -> RevisionAction:
    """Rebuild the engine action a suggestion was simulated with.

    Raises:
        ValidationError: If the action type is not one the engine produces.
    """
    try:
        action_type = ActionType(action_type)
    except ValueError:
        raise ValidationError(f"Unknown action type: {action_type}") from None
    if action_type is ActionType.LOWER_CONFIDENCE:
        return LowerConfidence.for_judgment_id(target_id)
    if action_type is ActionType.REJECT_JUDGMENT:
        return RejectJudgment(judgment_id=target_id)
    return GeneralizePrinciple(principle_id=target_id)


class SessionService:
    """Create, edit and evaluate sessions held in a ``SessionStore``."""

    def __init__(
        self, store: Optional[SessionStore] = None, settings: Optional[Settings] = None
    ) -> None:
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.settings = settings or get_settings()

    # === Lookup ===

    def get(self, session_id: str) -> Session:
        """Fetch a session or raise SessionNotFoundError."""
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _commit(self, session: Session) -> Session:
        self.store.put(session)
        return session

    # === Edits ===

    def create_session(
        self, actor_id: str = DEFAULT_ACTOR, seed: Optional[Dict[str, Any]] = None
    ) -> Session:
        """Create and store a new session, optionally seeded from raw input."""
        now = utc_now()
        patch = patch_from_input(seed, now)
        session = Session(
            id=make_id("wre"),
            judgments=patch.judgments or (),
            principles=patch.principles or (),
            links=patch.links or (),
            created_at=now,
            updated_at=now,
        ).with_entry(escape_text(actor_id), SESSION_CREATED, "Initialized WRE session.")
        logger.info("Created session %s", session.id)
        return self._commit(session)

    def add_judgment(
        self, session_id: str, data: Dict[str, Any], actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        session = self.get(session_id)
        judgment = judgment_from_input(data)
        updated = replace(session, judgments=session.judgments + (judgment,))
        return self._commit(
            updated.with_entry(escape_text(actor_id), ADD_JUDGMENT, f"Added {judgment.id}")
        )

    def add_principle(
        self, session_id: str, data: Dict[str, Any], actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        session = self.get(session_id)
        principle = principle_from_input(data)
        updated = replace(session, principles=session.principles + (principle,))
        return self._commit(
            updated.with_entry(escape_text(actor_id), ADD_PRINCIPLE, f"Added {principle.id}")
        )

    def add_link(
        self, session_id: str, data: Dict[str, Any], actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        """Add a link. Endpoints need not exist yet; dangling links are ignored when scoring.

        Raises:
            ValidationError: If the link names an unknown type or relation.
        """
        session = self.get(session_id)
        link = link_from_input(data)
        if link is None:
            raise ValidationError("link needs fromType, fromId, toType, toId and relation")
        updated = replace(session, links=session.links + (link,))
        return self._commit(
            updated.with_entry(escape_text(actor_id), ADD_LINK, f"Added {link.id}")
        )

    def remove_entity(
        self, session_id: str, entity_id: str, actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        """Remove a judgment, principle or link by id.

        Links pointing at a removed judgment or principle are left in place.

        Raises:
            ValidationError: If no entity has that id.
        """
        session = self.get(session_id)
        judgments = tuple(j for j in session.judgments if j.id != entity_id)
        principles = tuple(p for p in session.principles if p.id != entity_id)
        links = tuple(link for link in session.links if link.id != entity_id)
        removed = (
            len(session.judgments) - len(judgments)
            + len(session.principles) - len(principles)
            + len(session.links) - len(links)
        )
        if removed == 0:
            raise ValidationError(f"Unknown entity: {entity_id}")
        updated = replace(session, judgments=judgments, principles=principles, links=links)
        return self._commit(
            updated.with_entry(escape_text(actor_id), REMOVE_ENTITY, f"Removed {entity_id}")
        )

    # === Engine ===

    def run(
        self,
        session_id: str,
        weights: WeightsInput = None,
        timeout_ms: Optional[float] = None,
        session_patch: Optional[Dict[str, Any]] = None,
        actor_id: str = ENGINE_ACTOR,
    ) -> CoherenceReport:
        """Apply an optional patch, run the engine and record the result.

        The patched session becomes the stored session, with the report kept
        as ``last_report``. Without ``timeout_ms`` the configured default applies.
        """
        if timeout_ms is None:
            timeout_ms = self.settings.default_timeout_ms
        session = self.get(session_id)
        patch = patch_from_input(session_patch)
        if not patch.is_empty():
            session = simulate_patch(session, patch)

        report = run_coherence(session, weights, timeout_ms)
        details = (
            f"Coherence={report.coherence_score:.2f}, "
            f"conflicts={len(report.minimal_conflicts)}"
        )
        updated = replace(session, last_report=report.to_dict()).with_entry(
            escape_text(actor_id), RUN_COHERENCE, details
        )
        self._commit(updated)
        logger.debug("Session %s: %s", session_id, details)
        return report

    def apply_action(
        self, session_id: str, action: RevisionAction, actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        """Commit one revision action to the stored session."""
        session = self.get(session_id)
        updated = action.apply(session)
        if updated is session:
            raise ValidationError(f"Unknown target: {', '.join(action.target_ids)}")
        details = f"{action.action_type.value} on {', '.join(action.target_ids)}"
        return self._commit(updated.with_entry(escape_text(actor_id), APPLY_SUGGESTION, details))

    def apply_suggestion(
        self, session_id: str, suggestion_id: str, actor_id: str = DEFAULT_ACTOR
    ) -> Session:
        """Accept a suggestion from the session's last report.

        The action is re-applied to the current session rather than replaying
        the stored patch, so edits made since the run are kept.

        Raises:
            ValidationError: If the last report has no such suggestion.
        """
        session = self.get(session_id)
        suggestions: List[Dict[str, Any]] = (session.last_report or {}).get("suggestions", [])
        for suggestion in suggestions:
            if suggestion.get("id") == suggestion_id:
                action = action_for(suggestion["actionType"], suggestion["targetIds"][0])
                return self.apply_action(session_id, action, actor_id)
        raise ValidationError(f"No suggestion {suggestion_id} in the last report")

    def delete(self, session_id: str) -> bool:
        return self.store.delete(session_id)
