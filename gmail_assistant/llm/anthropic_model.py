"""Anthropic adapter for the conversational-model capability."""

import json
import logging
import os
from typing import Any

import anthropic
from anthropic import AsyncAnthropic
from anthropic.types import TextBlock, ToolUseBlock

from gmail_assistant.llm.base import (
    AssistantMessage,
    ChatMessage,
    ModelRateLimitError,
    ModelReply,
    ToolCall,
    ToolResultsMessage,
    UserMessage,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-6"
DEFAULT_MAX_TOKENS = 1024


class AnthropicModel:
    """Claude with tool use, behind the ``ConversationalModel`` interface.

    Usage::

        model = AnthropicModel(api_key="sk-...")
        reply = await model.complete(system, [UserMessage("show unread")], TOOL_DEFINITIONS)
        for call in reply.tool_calls:
            ...
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._client = client or AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        system: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelReply:
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system,
                tools=tools,  # type: ignore[arg-type]
                messages=to_anthropic_messages(messages),  # type: ignore[arg-type]
            )
        except anthropic.RateLimitError as exc:
            raise ModelRateLimitError("Anthropic", exc) from exc
        reply = parse_reply(response.content, response.stop_reason)
        logger.debug(
            "Model reply: %d tool call(s), stop_reason=%s", len(reply.tool_calls), reply.stop_reason
        )
        return reply


def parse_reply(content: list[Any], stop_reason: str | None = None) -> ModelReply:
    """Collect text blocks and tool_use blocks from a Messages API response."""
    texts: list[str] = []
    calls: list[ToolCall] = []
    for block in content:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            arguments = block.input if isinstance(block.input, dict) else {}
            calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(arguments)))
    return ModelReply(text="\n".join(t for t in texts if t), tool_calls=calls, stop_reason=stop_reason)


def to_anthropic_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Translate neutral messages into Messages API ``messages`` entries."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if isinstance(msg, UserMessage):
            converted.append({"role": "user", "content": msg.text})
        elif isinstance(msg, AssistantMessage):
            blocks: list[dict[str, Any]] = []
            if msg.text:
                blocks.append({"type": "text", "text": msg.text})
            blocks.extend(
                {"type": "tool_use", "id": c.id, "name": c.name, "input": c.arguments}
                for c in msg.tool_calls
            )
            converted.append({"role": "assistant", "content": blocks})
        elif isinstance(msg, ToolResultsMessage):
            converted.append({
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": o.call_id,
                        "content": json.dumps(o.content),
                        "is_error": o.is_error,
                    }
                    for o in msg.outcomes
                ],
            })
    return converted
