"""
Shared types for equilibrium.

All session dataclasses live here. They are the shared vocabulary between
the coherence engine, the session service, the revision assistant and the
CLI. The engine receives a Session value and only ever returns derived
values, so every container is frozen and holds tuples, not lists.

Wire format: ``to_dict()`` emits the camelCase keys used by JSON clients
(``sourceNote``, ``fromType``, ``minimalConflicts`` ...). ``from_dict()``
accepts the same keys and, for convenience, the snake_case field names.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# === Shared Utility Functions ===


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return datetime.now(timezone.utc).isoformat()


def make_id(prefix: str) -> str:
    """Short random id with a type prefix, e.g. ``j_3f9a1c2d``."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def clamp(value: float, low: float, high: float) -> float:
    """Clamp into [low, high]; NaN and infinities collapse to ``low``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return low
    if not math.isfinite(number):
        return low
    return max(low, min(high, number))


def _get(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


# === Enums ===


class EntityType(str, Enum):
    """Kinds of entity a link endpoint can refer to."""

    JUDGMENT = "judgment"
    PRINCIPLE = "principle"


class Relation(str, Enum):
    """Relation carried by a link."""

    SUPPORTS = "supports"
    CONFLICTS = "conflicts"


class PrincipleScope(str, Enum):
    """How broadly a principle claims to apply."""

    UNIVERSAL = "universal"
    CONTEXTUAL = "contextual"
    DEFEASIBLE = "defeasible"


class ActionType(str, Enum):
    """Revision action kinds, in ranking priority order."""

    LOWER_CONFIDENCE = "lower_confidence"
    REJECT_JUDGMENT = "reject_judgment"
    GENERALIZE_PRINCIPLE = "generalize_principle"


# Lower value wins a tie on effect estimate.
ACTION_PRIORITY: Dict[ActionType, int] = {
    ActionType.LOWER_CONFIDENCE: 0,
    ActionType.REJECT_JUDGMENT: 1,
    ActionType.GENERALIZE_PRINCIPLE: 2,
}

VALID_SCOPE_VALUES = frozenset(s.value for s in PrincipleScope)


# === Entities ===


@dataclass(frozen=True)
class Judgment:
    """A considered judgment.

    ``confidence`` is always held in [0, 100]; out-of-range values are
    clamped on construction, so every write path (including
    ``dataclasses.replace``) keeps the invariant.
    """

    id: str
    text: str
    confidence: float
    tags: Tuple[str, ...] = ()
    source_note: str = ""
    rejected: bool = False
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp(self.confidence, 0.0, 100.0))
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "rejected", bool(self.rejected))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "confidence": self.confidence,
            "tags": list(self.tags),
            "sourceNote": self.source_note,
            "rejected": self.rejected,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Judgment":
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            confidence=data.get("confidence", 0),
            tags=tuple(data.get("tags") or ()),
            source_note=str(_get(data, "sourceNote", "source_note", "") or ""),
            rejected=bool(data.get("rejected", False)),
            created_at=str(_get(data, "createdAt", "created_at", "") or ""),
            updated_at=str(_get(data, "updatedAt", "updated_at", "") or ""),
        )


@dataclass(frozen=True)
class Principle:
    """A candidate principle. ``plausibility`` is clamped into [0, 1]."""

    id: str
    text: str
    scope: PrincipleScope = PrincipleScope.UNIVERSAL
    plausibility: float = 0.5
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "plausibility", clamp(self.plausibility, 0.0, 1.0))
        object.__setattr__(self, "scope", PrincipleScope(self.scope))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "scope": self.scope.value,
            "plausibility": self.plausibility,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Principle":
        return cls(
            id=str(data["id"]),
            text=str(data.get("text", "")),
            scope=PrincipleScope(data.get("scope", PrincipleScope.UNIVERSAL.value)),
            plausibility=data.get("plausibility", 0.5),
            created_at=str(_get(data, "createdAt", "created_at", "") or ""),
            updated_at=str(_get(data, "updatedAt", "updated_at", "") or ""),
        )


@dataclass(frozen=True)
class Link:
    """A directed supports/conflicts relation between two entities.

    Endpoints are not checked here: a link may outlive the entity it points
    at. The scorer and the conflict detector skip such dangling links.
    """

    id: str
    from_type: EntityType
    from_id: str
    to_type: EntityType
    to_id: str
    relation: Relation
    created_at: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "from_type", EntityType(self.from_type))
        object.__setattr__(self, "to_type", EntityType(self.to_type))
        object.__setattr__(self, "relation", Relation(self.relation))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fromType": self.from_type.value,
            "fromId": self.from_id,
            "toType": self.to_type.value,
            "toId": self.to_id,
            "relation": self.relation.value,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Link":
        return cls(
            id=str(data["id"]),
            from_type=EntityType(_get(data, "fromType", "from_type")),
            from_id=str(_get(data, "fromId", "from_id")),
            to_type=EntityType(_get(data, "toType", "to_type")),
            to_id=str(_get(data, "toId", "to_id")),
            relation=Relation(data["relation"]),
            created_at=str(_get(data, "createdAt", "created_at", "") or ""),
        )


@dataclass(frozen=True)
class RevisionEntry:
    """One append-only entry in a session's revision log."""

    id: str
    timestamp: str
    actor_id: str
    operation: str
    details: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "actorId": self.actor_id,
            "operation": self.operation,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RevisionEntry":
        return cls(
            id=str(data["id"]),
            timestamp=str(data.get("timestamp", "")),
            actor_id=str(_get(data, "actorId", "actor_id", "")),
            operation=str(data.get("operation", "")),
            details=str(data.get("details", "")),
        )


# === Patches ===


@dataclass(frozen=True)
class SessionPatch:
    """Partial replacement of a session's entity collections.

    A ``None`` collection means "keep what the session has"; an empty tuple
    means "replace with nothing".
    """

    judgments: Optional[Tuple[Judgment, ...]] = None
    principles: Optional[Tuple[Principle, ...]] = None
    links: Optional[Tuple[Link, ...]] = None

    def __post_init__(self) -> None:
        for name in ("judgments", "principles", "links"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(value))

    def is_empty(self) -> bool:
        return self.judgments is None and self.principles is None and self.links is None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.judgments is not None:
            out["judgments"] = [j.to_dict() for j in self.judgments]
        if self.principles is not None:
            out["principles"] = [p.to_dict() for p in self.principles]
        if self.links is not None:
            out["links"] = [link.to_dict() for link in self.links]
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionPatch":
        def _maybe(key: str, factory: Any) -> Optional[Tuple[Any, ...]]:
            items = data.get(key)
            if items is None:
                return None
            return tuple(factory(item) for item in items)

        return cls(
            judgments=_maybe("judgments", Judgment.from_dict),
            principles=_maybe("principles", Principle.from_dict),
            links=_maybe("links", Link.from_dict),
        )


# === Engine results ===


@dataclass(frozen=True)
class CoherenceWeights:
    """Relative weights of the three score terms."""

    agreement_ratio: float = 0.5
    avg_confidence_supported: float = 0.35
    parsimony_penalty: float = 0.15

    def total(self) -> float:
        return self.agreement_ratio + self.avg_confidence_supported + self.parsimony_penalty

    def to_dict(self) -> Dict[str, float]:
        return {
            "agreementRatio": self.agreement_ratio,
            "avgConfidenceSupported": self.avg_confidence_supported,
            "parsimonyPenalty": self.parsimony_penalty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoherenceWeights":
        """Build weights from a possibly partial mapping; gaps keep defaults."""
        defaults = cls()
        return cls(
            agreement_ratio=_get(
                data, "agreementRatio", "agreement_ratio", defaults.agreement_ratio
            ),
            avg_confidence_supported=_get(
                data,
                "avgConfidenceSupported",
                "avg_confidence_supported",
                defaults.avg_confidence_supported,
            ),
            parsimony_penalty=_get(
                data, "parsimonyPenalty", "parsimony_penalty", defaults.parsimony_penalty
            ),
        )


DEFAULT_WEIGHTS = CoherenceWeights()


@dataclass(frozen=True)
class CoherenceBreakdown:
    """Each score term plus the normalized weights that combined them."""

    agreement_ratio: float
    avg_confidence_supported: float
    parsimony_penalty: float
    weights: CoherenceWeights

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agreementRatio": self.agreement_ratio,
            "avgConfidenceSupported": self.avg_confidence_supported,
            "parsimonyPenalty": self.parsimony_penalty,
            "weights": self.weights.to_dict(),
        }


@dataclass(frozen=True)
class ConflictSet:
    """A minimal conflicting set of 2 or 3 entity ids (sorted)."""

    ids: Tuple[str, ...]
    reason: str

    @property
    def size(self) -> int:
        return len(self.ids)

    @property
    def key(self) -> str:
        return "|".join(self.ids)

    def to_dict(self) -> Dict[str, Any]:
        return {"ids": list(self.ids), "reason": self.reason, "size": self.size}


@dataclass(frozen=True)
class Suggestion:
    """A ranked, simulated revision proposal produced by the engine."""

    id: str
    title: str
    action_type: ActionType
    target_ids: Tuple[str, ...]
    explanation: str
    effect_estimate: float
    predicted_coherence: float
    resulting_patch: SessionPatch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "actionType": self.action_type.value,
            "targetIds": list(self.target_ids),
            "explanation": self.explanation,
            "effectEstimate": self.effect_estimate,
            "predictedCoherence": self.predicted_coherence,
            "resultingPatch": self.resulting_patch.to_dict(),
        }


@dataclass(frozen=True)
class CoherenceReport:
    """Everything one engine run produces."""

    coherence_score: float
    breakdown: CoherenceBreakdown
    minimal_conflicts: Tuple[ConflictSet, ...]
    suggestions: Tuple[Suggestion, ...]
    timed_out: bool
    duration_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coherenceScore": self.coherence_score,
            "breakdown": self.breakdown.to_dict(),
            "minimalConflicts": [c.to_dict() for c in self.minimal_conflicts],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "timedOut": self.timed_out,
            "durationMs": self.duration_ms,
        }


# === Session ===


@dataclass(frozen=True)
class Session:
    """A WRE session snapshot.

    Sessions are owned by a store; the engine reads one snapshot per call
    and never writes back. ``last_report`` is kept as the report's wire dict
    so a stored session round-trips through JSON unchanged.
    """

    id: str
    judgments: Tuple[Judgment, ...] = ()
    principles: Tuple[Principle, ...] = ()
    links: Tuple[Link, ...] = ()
    revision_log: Tuple[RevisionEntry, ...] = ()
    created_at: str = ""
    updated_at: str = ""
    last_report: Optional[Dict[str, Any]] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "judgments", tuple(self.judgments))
        object.__setattr__(self, "principles", tuple(self.principles))
        object.__setattr__(self, "links", tuple(self.links))
        object.__setattr__(self, "revision_log", tuple(self.revision_log))

    def find_judgment(self, judgment_id: str) -> Optional[Judgment]:
        for judgment in self.judgments:
            if judgment.id == judgment_id:
                return judgment
        return None

    def find_principle(self, principle_id: str) -> Optional[Principle]:
        for principle in self.principles:
            if principle.id == principle_id:
                return principle
        return None

    def with_entry(self, actor_id: str, operation: str, details: str = "") -> "Session":
        """Return a copy with one revision entry appended and updated_at bumped."""
        now = utc_now()
        entry = RevisionEntry(
            id=make_id("rev"),
            timestamp=now,
            actor_id=actor_id,
            operation=operation,
            details=details,
        )
        return replace(self, revision_log=self.revision_log + (entry,), updated_at=now)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "judgments": [j.to_dict() for j in self.judgments],
            "principles": [p.to_dict() for p in self.principles],
            "links": [link.to_dict() for link in self.links],
            "revisionLog": [entry.to_dict() for entry in self.revision_log],
        }
        if self.last_report is not None:
            out["lastReport"] = self.last_report
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        return cls(
            id=str(data.get("id") or make_id("wre")),
            judgments=tuple(Judgment.from_dict(j) for j in data.get("judgments") or ()),
            principles=tuple(Principle.from_dict(p) for p in data.get("principles") or ()),
            links=tuple(Link.from_dict(link) for link in data.get("links") or ()),
            revision_log=tuple(
                RevisionEntry.from_dict(e)
                for e in _get(data, "revisionLog", "revision_log", None) or ()
            ),
            created_at=str(_get(data, "createdAt", "created_at", "") or ""),
            updated_at=str(_get(data, "updatedAt", "updated_at", "") or ""),
            last_report=_get(data, "lastReport", "last_report", None),
        )
