"""equilibrium model implementations.

Concrete ModelProtocol implementations plus the JSON adapter the revision
assistant consumes.
"""

from __future__ import annotations

from equilibrium.models.anthropic import AnthropicModel
from equilibrium.models.json_adapter import ModelJsonAdapter, parse_json_from_text
from equilibrium.models.ollama import OllamaModel

__all__ = ["AnthropicModel", "ModelJsonAdapter", "OllamaModel", "parse_json_from_text"]
