"""JSON adapter over a ModelProtocol.

The assistant never talks to a model directly: it asks for JSON through
``ModelJsonAdapter.generate_json`` and validates whatever comes back.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from equilibrium.protocols import GenerateJsonRequest, ModelMessage, ModelOutputError, ModelProtocol

logger = logging.getLogger(__name__)


def parse_json_from_text(text: str) -> Any:
    """Parse the JSON value embedded in a model response.

    Accepts bare JSON, JSON inside markdown code fences, or JSON surrounded
    by prose (the outermost bracket pair that opens first).

    Raises:
        ModelOutputError: If no parseable JSON is found.
    """
    trimmed = text.strip()
    if trimmed.startswith("```"):
        lines = trimmed.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        trimmed = "\n".join(lines).strip()

    try:
        return json.loads(trimmed)
    except json.JSONDecodeError:
        pass

    spans = [
        (trimmed.find("{"), trimmed.rfind("}")),
        (trimmed.find("["), trimmed.rfind("]")),
    ]
    # Whichever bracket opens first is tried first
    spans.sort(key=lambda span: span[0] if span[0] >= 0 else len(trimmed))
    for start, end in spans:
        if start >= 0 and end > start:
            try:
                return json.loads(trimmed[start : end + 1])
            except json.JSONDecodeError:
                continue

    raise ModelOutputError("Model response did not contain parseable JSON.")


class ModelJsonAdapter:
    """JsonModelAdapter backed by any ModelProtocol."""

    def __init__(self, model: ModelProtocol) -> None:
        self._model = model

    @property
    def provider_name(self) -> str:
        return self._model.capabilities.provider

    def generate_json(self, request: GenerateJsonRequest) -> Any:
        user_prompt = request.user_prompt
        if request.json_schema is not None:
            user_prompt = (
                f"{user_prompt}\n\nReturn only JSON. Schema hint:\n"
                f"{json.dumps(request.json_schema, indent=2)}"
            )
        response = self._model.generate(
            [ModelMessage(role="user", content=user_prompt)],
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            system=request.system_prompt,
        )
        logger.debug(
            "Model %s answered with %d chars", self._model.model_id, len(response.content)
        )
        return parse_json_from_text(response.content)
