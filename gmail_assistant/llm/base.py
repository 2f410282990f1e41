"""Provider-neutral conversation types and the conversational-model capability."""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ToolCall:
    """One tool invocation requested by the model."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelReply:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str | None = None


@dataclass(frozen=True)
class ToolOutcome:
    """The JSON result of one tool call, fed back to the model."""

    call_id: str
    content: dict[str, Any]
    is_error: bool = False


# ── Messages ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UserMessage:
    text: str


@dataclass(frozen=True)
class AssistantMessage:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(frozen=True)
class ToolResultsMessage:
    outcomes: list[ToolOutcome]


ChatMessage = UserMessage | AssistantMessage | ToolResultsMessage


class ModelRateLimitError(Exception):
    """Raised by an adapter when its backend rejects a request for rate limiting."""

    def __init__(self, backend: str, cause: object) -> None:
        super().__init__(f"{backend} rate limit: {cause}")
        self.backend = backend


class ConversationalModel(Protocol):
    """Anything that can turn a conversation plus tool schemas into a reply.

    ``tools`` uses the ``{"name", "description", "input_schema"}`` shape;
    adapters translate it for their backend.
    """

    async def complete(
        self,
        system: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelReply: ...
