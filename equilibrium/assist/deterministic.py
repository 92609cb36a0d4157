"""Deterministic fallbacks for judgment summaries and principle drafts.

Used whenever no model is configured, sending to a model is disabled, or a
model call fails. Output is plain text; the schemas in ``schemas`` do the
escaping and bounding.
"""

import re
from typing import Sequence

from equilibrium.types import Judgment, PrincipleScope

MAX_TEXT_LENGTH = 1200
MAX_GROUPS = 5
MAX_SUMMARY_ASSUMPTIONS = 5
DEFAULT_GROUP = "general"

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_WHITESPACE = re.compile(r"\s+")

_ASSUMPTION_TRIGGERS = (
    (
        ("always", "never", "all", "must"),
        "Assumes the judgment applies with broad or universal force across comparable cases.",
    ),
    (
        ("because", "therefore", "causes", "leads to"),
        "Assumes the cited causal or explanatory relation is reliable in the relevant context.",
    ),
    (
        ("wrong", "permissible", "required", "ought", "should"),
        "Assumes shared interpretation of the key normative terms used in the judgment.",
    ),
    (
        ("likely", "probably", "risk", "expected"),
        "Assumes uncertainty is being weighed using a consistent evidential standard.",
    ),
)

BACKGROUND_ASSUMPTION = (
    "Assumes omitted background facts are stable enough not to overturn the local judgment."
)

DEFAULT_STATEMENT = (
    "In comparable cases, revise commitments and principles to preserve mutual "
    "support and reduce unresolved conflict."
)
PROHIBITIVE_STATEMENT = (
    "Avoid actions in this domain when they predictably impose serious harm unless "
    "a stronger countervailing reason is available."
)
PERMISSIVE_STATEMENT = (
    "Treat actions in this domain as conditionally permissible when they reduce "
    "overall expected harm and respect stable constraints."
)


def _normalize(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _contains_any(text: str, needles: Sequence[str]) -> bool:
    lower = text.lower()
    return any(needle in lower for needle in needles)


def _title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.split())


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_BREAK.split(_normalize(text)) if s.strip()]


def summarize_judgment(judgment_id: str, text: str, snippets: Sequence[str] = ()) -> dict:
    """Summary dict with ``summary`` and ``assumptions`` keys."""
    cleaned = _normalize(text)[:MAX_TEXT_LENGTH]
    base = " ".join(split_sentences(cleaned)[:2]) or cleaned
    anchor = f" Context anchor: {_normalize(snippets[0])[:120]}." if snippets else ""

    assumptions = [
        assumption
        for needles, assumption in _ASSUMPTION_TRIGGERS
        if _contains_any(cleaned, needles)
    ]
    assumptions.append(BACKGROUND_ASSUMPTION)

    return {
        "summary": f"Judgment {judgment_id} claims: {base}{anchor}",
        "assumptions": list(dict.fromkeys(assumptions))[:MAX_SUMMARY_ASSUMPTIONS],
    }


def detect_scope(judgments: Sequence[Judgment]) -> PrincipleScope:
    combined = " ".join(j.text.lower() for j in judgments)
    if _contains_any(combined, ("always", "never", "all cases", "in every case")):
        return PrincipleScope.UNIVERSAL
    if _contains_any(combined, ("unless", "except", "typically", "generally")):
        return PrincipleScope.DEFEASIBLE
    return PrincipleScope.CONTEXTUAL


def principle_statement(label: str, judgments: Sequence[Judgment]) -> str:
    aggregate = " ".join(j.text.lower() for j in judgments)
    prohibitive = _contains_any(aggregate, ("wrong", "impermissible", "forbidden", "avoid"))
    permissive = _contains_any(aggregate, ("permissible", "required", "should", "ought"))

    statement = DEFAULT_STATEMENT
    if prohibitive and not permissive:
        statement = PROHIBITIVE_STATEMENT
    elif permissive and not prohibitive:
        statement = PERMISSIVE_STATEMENT
    return f"{_title_case(label)} principle: {statement}"


def draft_principles(judgments: Sequence[Judgment], snippets: Sequence[str] = ()) -> list[dict]:
    """Group judgments by their first tag and draft one principle per group."""
    groups: dict[str, list[Judgment]] = {}
    for judgment in judgments:
        label = judgment.tags[0][:40].lower() if judgment.tags else DEFAULT_GROUP
        groups.setdefault(label, []).append(judgment)

    hint = f" Context: {_normalize(snippets[0])[:100]}." if snippets else ""
    drafts = []
    for label in sorted(groups)[:MAX_GROUPS]:
        group = groups[label]
        drafts.append(
            {
                "title": f"{_title_case(label)} Coherence Principle",
                "statement": f"{principle_statement(label, group)}{hint}",
                "scope": detect_scope(group).value,
                "supportingJudgmentIds": [j.id for j in group],
            }
        )
    return drafts
