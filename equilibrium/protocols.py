"""
equilibrium Protocol Definitions
=================================

The interface contracts between the coherence engine and its collaborators.

Components and their roles:
- Engine:     Pure functions over a Session value. Scores, detects conflicts,
              simulates patches, ranks suggestions. Owns no state.
- Store:      Owns sessions. get/put/delete with last-write-wins semantics.
- Assistant:  Optional model-backed helper. Always has a deterministic
              fallback that uses the engine's simulate + score primitives.
- Model:      Optional generative model behind a JSON adapter.
- Retriever:  Optional context source for model prompts. Never consulted by
              the scorer or the conflict detector.

Error handling philosophy:
- Malformed external input raises ValidationError at ingress, before the
  engine sees it
- Engine functions clamp numeric input and never raise for well-typed input
- A timeout is a flag on the report, not an exception
- Model adapter failures raise ModelAdapterError inside the adapter; the
  assistant catches them and falls back, so callers never see them
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    Optional,
    Protocol,
    runtime_checkable,
)

from equilibrium.types import Session

# =============================================================================
# ERRORS
# =============================================================================


class EquilibriumError(Exception):
    """Base for all equilibrium errors."""

    pass


class ValidationError(EquilibriumError, ValueError):
    """Raised when external input fails ingress validation."""

    pass


class SessionNotFoundError(EquilibriumError, KeyError):
    """Raised when a session id does not resolve in the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return self.args[0]


class ModelAdapterError(EquilibriumError):
    """Raised when a model provider call fails.

    ``error_class`` is one of: auth, rate_limit, timeout, server, unknown.
    """

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


class ModelOutputError(EquilibriumError):
    """Raised when a model response contains no parseable JSON."""

    pass


# =============================================================================
# MODEL TYPES
# =============================================================================


@dataclass
class ModelCapabilities:
    """What a model implementation can do."""

    model_id: str
    provider: str  # "anthropic", "ollama", ...
    context_window: int
    max_output_tokens: int = 4096


@dataclass
class ModelMessage:
    """A message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ModelResponse:
    """Complete response from a model."""

    content: str
    usage: dict[str, int] = field(default_factory=dict)
    stop_reason: Optional[str] = None
    model_id: Optional[str] = None


@dataclass
class GenerateJsonRequest:
    """A structured-output request handed to a JsonModelAdapter."""

    system_prompt: str
    user_prompt: str
    temperature: float = 0.0
    max_tokens: int = 700
    json_schema: Any = None  # prompt guidance only, never enforced by the adapter


# =============================================================================
# MODEL PROTOCOL
# =============================================================================


@runtime_checkable
class ModelProtocol(Protocol):
    """Interface for a generative model.

    Implementations: AnthropicModel, OllamaModel.
    """

    @property
    def model_id(self) -> str:
        """Identifier (e.g., 'claude-haiku-4-5-20251001', 'llama3.2:latest')."""
        ...

    @property
    def capabilities(self) -> ModelCapabilities:
        """What this model can do."""
        ...

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response."""
        ...


@runtime_checkable
class JsonModelAdapter(Protocol):
    """Narrow structured-output interface the assistant consumes.

    ``generate_json`` returns whatever JSON value the model produced. It is
    untrusted: callers validate it against a schema before use.
    """

    @property
    def provider_name(self) -> str: ...

    def generate_json(self, request: GenerateJsonRequest) -> Any: ...


# =============================================================================
# COLLABORATORS
# =============================================================================


@runtime_checkable
class SessionStore(Protocol):
    """Session repository.

    Last-write-wins: ``put`` replaces whatever is stored under the session
    id. Hosts serving concurrent requests against one session id must
    serialize them per session (or version sessions optimistically); the
    store itself does not merge edits.
    """

    def get(self, session_id: str) -> Optional[Session]: ...

    def put(self, session: Session) -> None: ...

    def delete(self, session_id: str) -> bool: ...


@runtime_checkable
class Retriever(Protocol):
    """Context source for model prompts."""

    def retrieve(self, query: str, k: int) -> list[str]:
        """Return up to ``k`` text snippets relevant to ``query``."""
        ...
