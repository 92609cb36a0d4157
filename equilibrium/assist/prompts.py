"""Prompt templates for the revision assistant."""

import json
from typing import Any, Sequence

from equilibrium.protocols import GenerateJsonRequest

SUMMARIZE_JUDGMENT = {
    "system": (
        "You are a reflective-equilibrium assistant. Return only JSON with keys: "
        "summary, assumptions. No markdown."
    ),
    "user": (
        "Summarize judgment {judgment_id} from the text below. Output JSON: "
        '{{"summary": string, "assumptions": string[]}}'
    ),
}

GENERATE_PRINCIPLES = {
    "system": (
        "You draft candidate principles for wide reflective equilibrium. "
        "Return only a JSON array."
    ),
    "user": (
        "Given judgments {judgment_ids}, output a JSON array of objects with exact keys: "
        "title, statement, scope, supportingJudgmentIds."
    ),
}

SUGGEST_REVISIONS = {
    "system": (
        "You suggest minimal revisions for coherence improvement. "
        "Return only a JSON array with exact fields."
    ),
    "user": (
        "Given the conflict set {conflict_ids}, output a JSON array of at most "
        "{max_suggestions} objects with: action_type (lower_confidence, "
        "reject_judgment or generalize_principle), target_id, change, rationale, "
        "expected_effect_delta, confidence_estimate."
    ),
}

SUMMARY_SCHEMA_HINT = {"summary": "string", "assumptions": ["string"]}

PRINCIPLES_SCHEMA_HINT = [
    {
        "title": "string",
        "statement": "string",
        "scope": "contextual",
        "supportingJudgmentIds": ["string"],
    }
]

REVISIONS_SCHEMA_HINT = [
    {
        "action_type": "lower_confidence",
        "target_id": "j1",
        "change": "confidence:-15",
        "rationale": "string",
        "expected_effect_delta": 1.25,
        "confidence_estimate": 0.63,
    }
]


def build_request(
    template: dict[str, str],
    payload: dict[str, Any],
    snippets: Sequence[str] = (),
    schema_hint: Any = None,
    **fields: Any,
) -> GenerateJsonRequest:
    """Fill a template and attach the JSON payload and retrieved context."""
    body = dict(payload)
    if snippets:
        body["context"] = list(snippets)
    user_prompt = f"{template['user'].format(**fields)}\n\n{json.dumps(body, ensure_ascii=False)}"
    return GenerateJsonRequest(
        system_prompt=template["system"],
        user_prompt=user_prompt,
        temperature=0.0,
        max_tokens=700,
        json_schema=schema_hint,
    )
