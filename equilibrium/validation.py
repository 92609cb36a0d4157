"""Ingress validation for equilibrium.

Turns raw, untrusted dict input (JSON bodies, CLI files, model output that
names entities) into well-typed Judgment / Principle / Link records before
the engine ever sees them.

Canonical helpers:
- ``sanitize_string``: string validation + control-char stripping
- ``sanitize_number``: numeric validation + NaN/Infinity rejection
- ``sanitize_list``: array validation + null-item rejection
- ``escape_text``: HTML-escape and trim text before it is stored or echoed

Out-of-range confidence and plausibility are clamped, not rejected: the
editor UI lets users drag sliders past the ends.
"""

import html
import logging
import math
import re
from typing import Any, Dict, List, Optional

from equilibrium.protocols import ValidationError
from equilibrium.types import (
    VALID_SCOPE_VALUES,
    EntityType,
    Judgment,
    Link,
    Principle,
    PrincipleScope,
    Relation,
    SessionPatch,
    clamp,
    make_id,
    utc_now,
)

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4000
MAX_ID_LENGTH = 120
MAX_TAG_LENGTH = 60
MAX_TAGS = 24

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_string(
    value: Any, field_name: str, max_length: int = 1000, required: bool = True
) -> str:
    """Sanitize and validate string inputs.

    Args:
        value: The value to sanitize.
        field_name: Name of the field for error messages.
        max_length: Maximum allowed string length.
        required: If True, empty strings are rejected.

    Returns:
        Sanitized string.

    Raises:
        ValidationError: If validation fails.
    """
    if value is None and not required:
        return ""

    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string, got {type(value).__name__}")

    if required and not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValidationError(
            f"{field_name} too long (max {max_length} characters, got {len(value)})"
        )

    # Remove null bytes and control characters except newlines and tabs
    return _CONTROL_CHARS.sub("", value)


def sanitize_number(
    value: Any,
    field_name: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    default: Optional[float] = None,
) -> float:
    """Validate numeric inputs, rejecting NaN and Infinity.

    Raises:
        ValidationError: If validation fails.
    """
    if value is None:
        if default is not None:
            return default
        raise ValidationError(f"{field_name} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got bool")

    if not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValidationError(f"{field_name} must be a finite number, got {value}")

    if min_val is not None and value < min_val:
        raise ValidationError(f"{field_name} must be >= {min_val}, got {value}")

    if max_val is not None and value > max_val:
        raise ValidationError(f"{field_name} must be <= {max_val}, got {value}")

    return float(value)


def sanitize_list(
    value: Any,
    field_name: str,
    item_max_length: int = 500,
    max_items: int = 100,
) -> List[str]:
    """Validate and sanitize list inputs. Empty items are dropped.

    Raises:
        ValidationError: If validation fails.
    """
    if value is None:
        return []

    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field_name} must be an array, got {type(value).__name__}")

    if len(value) > max_items:
        raise ValidationError(f"{field_name} too many items (max {max_items}, got {len(value)})")

    if any(item is None for item in value):
        raise ValidationError(f"{field_name} must not contain null items")

    sanitized = []
    for i, item in enumerate(value):
        sanitized_item = escape_text(
            sanitize_string(item, f"{field_name}[{i}]", item_max_length, required=False)
        )
        if sanitized_item:
            sanitized.append(sanitized_item)

    return sanitized


def escape_text(value: Any, max_length: Optional[int] = None) -> str:
    """HTML-escape and trim. ``None`` becomes an empty string."""
    text = "" if value is None else str(value)
    escaped = html.escape(text, quote=True).replace("&#x27;", "&#39;").strip()
    if max_length is not None:
        escaped = escaped[:max_length]
    return escaped


def _bounded(value: Any, field_name: str, low: float, high: float) -> float:
    """A finite number clamped into [low, high]; non-finite floats clamp to ``low``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")
    return clamp(value, low, high)


def _clean_id(value: Any, field_name: str) -> str:
    """Ids are validated on the raw value, then escaped without truncation."""
    return escape_text(sanitize_string(value, field_name, MAX_ID_LENGTH))


def _entity_id(value: Any, field_name: str, prefix: str) -> str:
    if value is None or value == "":
        return make_id(prefix)
    return _clean_id(value, field_name)


def judgment_from_input(data: Dict[str, Any], now: Optional[str] = None) -> Judgment:
    """Build a Judgment from a raw mapping.

    Raises:
        ValidationError: If text is missing or a field has the wrong type.
    """
    if not isinstance(data, dict):
        raise ValidationError("judgment must be an object")
    now = now or utc_now()
    if not isinstance(data.get("text"), str):
        raise ValidationError("judgment.text must be a string")
    text = sanitize_string(data["text"], "judgment.text", MAX_TEXT_LENGTH, required=False)
    return Judgment(
        id=_entity_id(data.get("id"), "judgment.id", "j"),
        text=escape_text(text),
        confidence=_bounded(data.get("confidence", 0), "judgment.confidence", 0.0, 100.0),
        tags=tuple(
            sanitize_list(data.get("tags"), "judgment.tags", MAX_TAG_LENGTH, MAX_TAGS)
        ),
        source_note=escape_text(
            sanitize_string(
                data.get("sourceNote", data.get("source_note")),
                "judgment.sourceNote",
                MAX_TEXT_LENGTH,
                required=False,
            )
        ),
        rejected=bool(data.get("rejected", False)),
        created_at=str(data.get("createdAt") or data.get("created_at") or now),
        updated_at=now,
    )


def principle_from_input(data: Dict[str, Any], now: Optional[str] = None) -> Principle:
    """Build a Principle from a raw mapping. Unknown scopes fall back to universal.

    Raises:
        ValidationError: If text is missing or a field has the wrong type.
    """
    if not isinstance(data, dict):
        raise ValidationError("principle must be an object")
    now = now or utc_now()
    if not isinstance(data.get("text"), str):
        raise ValidationError("principle.text must be a string")
    text = sanitize_string(data["text"], "principle.text", MAX_TEXT_LENGTH, required=False)
    raw_scope = data.get("scope")
    scope = (
        PrincipleScope(raw_scope)
        if isinstance(raw_scope, str) and raw_scope in VALID_SCOPE_VALUES
        else PrincipleScope.UNIVERSAL
    )
    return Principle(
        id=_entity_id(data.get("id"), "principle.id", "p"),
        text=escape_text(text),
        scope=scope,
        plausibility=_bounded(data.get("plausibility", 0.5), "principle.plausibility", 0.0, 1.0),
        created_at=str(data.get("createdAt") or data.get("created_at") or now),
        updated_at=now,
    )


def link_from_input(data: Dict[str, Any], now: Optional[str] = None) -> Optional[Link]:
    """Build a Link from a raw mapping, or None if it is structurally unusable.

    A link that names unknown entity types or relations is dropped rather
    than raised: clients routinely send half-drawn edges.
    """
    if not isinstance(data, dict):
        return None
    now = now or utc_now()

    from_type = data.get("fromType", data.get("from_type"))
    to_type = data.get("toType", data.get("to_type"))
    from_id = data.get("fromId", data.get("from_id"))
    to_id = data.get("toId", data.get("to_id"))
    relation = data.get("relation")

    if not from_id or not to_id or not from_type or not to_type or not relation:
        return None
    valid_types = {t.value for t in EntityType}
    if from_type not in valid_types or to_type not in valid_types:
        return None
    if relation not in {r.value for r in Relation}:
        return None
    if not isinstance(from_id, str) or not isinstance(to_id, str):
        return None
    try:
        from_id = _clean_id(from_id, "link.fromId")
        to_id = _clean_id(to_id, "link.toId")
    except ValidationError as e:
        logger.debug("Dropping link with unusable endpoint: %s", e)
        return None

    return Link(
        id=_entity_id(data.get("id"), "link.id", "link"),
        from_type=EntityType(from_type),
        from_id=from_id,
        to_type=EntityType(to_type),
        to_id=to_id,
        relation=Relation(relation),
        created_at=str(data.get("createdAt") or data.get("created_at") or now),
    )


def patch_from_input(data: Optional[Dict[str, Any]], now: Optional[str] = None) -> SessionPatch:
    """Build a SessionPatch from raw input.

    Items without string text, or links that are structurally unusable, are
    skipped with a debug log; the rest of the patch still applies.
    """
    if not data:
        return SessionPatch()
    if not isinstance(data, dict):
        raise ValidationError("sessionPatch must be an object")
    now = now or utc_now()

    judgments = None
    if data.get("judgments") is not None:
        judgments = []
        for item in data["judgments"]:
            if not isinstance(item, dict) or not isinstance(item.get("text"), str):
                logger.debug("Skipping judgment without text in patch")
                continue
            judgments.append(judgment_from_input(item, now))

    principles = None
    if data.get("principles") is not None:
        principles = []
        for item in data["principles"]:
            if not isinstance(item, dict) or not isinstance(item.get("text"), str):
                logger.debug("Skipping principle without text in patch")
                continue
            principles.append(principle_from_input(item, now))

    links = None
    if data.get("links") is not None:
        links = []
        for item in data["links"]:
            link = link_from_input(item, now)
            if link is None:
                logger.debug("Skipping unusable link in patch: %r", item)
                continue
            links.append(link)

    return SessionPatch(
        judgments=None if judgments is None else tuple(judgments),
        principles=None if principles is None else tuple(principles),
        links=None if links is None else tuple(links),
    )
