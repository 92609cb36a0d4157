"""Auto-configure a model from settings and environment variables.

Provides a zero-config way to get a model for the revision assistant.
Returns None when nothing is configured, and the assistant then runs its
deterministic path only.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from equilibrium.config import Settings, get_settings
from equilibrium.protocols import ModelProtocol

logger = logging.getLogger(__name__)

# Default models, cheap and fast
_PROVIDER_DEFAULTS = {
    "anthropic": "claude-haiku-4-5-20251001",
    "ollama": "llama3.2:latest",
}


def auto_configure_model(settings: Optional[Settings] = None) -> Optional[ModelProtocol]:
    """Auto-detect and create a model.

    Detection priority (when ``EQUILIBRIUM_MODEL_PROVIDER`` is not set):
    1. ``CLAUDE_API_KEY`` or ``ANTHROPIC_API_KEY`` → Anthropic
    2. No key → ``None`` (graceful degradation)

    Ollama is never auto-detected; select it with
    ``EQUILIBRIUM_MODEL_PROVIDER=ollama``.

    Returns:
        A ModelProtocol instance, or None if no provider is available.
    """
    settings = settings or get_settings()
    forced_provider = settings.model_provider.lower().strip()

    if forced_provider:
        provider = forced_provider
    elif os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("CLAUDE_API_KEY"):
        provider = "anthropic"
    else:
        return None

    model_id = settings.model_id or _PROVIDER_DEFAULTS.get(provider)

    if provider == "anthropic":
        from equilibrium.models.anthropic import AnthropicModel

        model = AnthropicModel(model_id=model_id, timeout=settings.model_timeout_s)
        logger.info("Auto-configured AnthropicModel (model=%s)", model_id)
        return model

    if provider == "ollama":
        from equilibrium.models.ollama import OllamaModel

        model = OllamaModel(
            model_id=model_id,
            base_url=settings.ollama_base_url,
            timeout=settings.model_timeout_s,
        )
        logger.info("Auto-configured OllamaModel (model=%s)", model_id)
        return model

    logger.warning("Unknown model provider '%s', skipping auto-configuration", provider)
    return None
