"""Groq adapter for the conversational-model capability (OpenAI-style chat completions)."""

import json
import logging
import os
from typing import Any

import groq
from groq import AsyncGroq

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

DEFAULT_MODEL = "llama-3.3-70b-versatile"
DEFAULT_MAX_TOKENS = 1024


class GroqModel:
    """Groq-hosted models with tool calling, behind the ``ConversationalModel`` interface."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: AsyncGroq | None = None,
    ) -> None:
        self._client = client or AsyncGroq(api_key=api_key or os.environ.get("GROQ_API_KEY", ""))
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        system: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelReply:
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=[{"role": "system", "content": system}, *to_groq_messages(messages)],
                tools=to_groq_tools(tools),
                tool_choice="auto",
            )
        except groq.RateLimitError as exc:
            raise ModelRateLimitError("Groq", exc) from exc
        choice = response.choices[0]
        reply = parse_message(choice.message, choice.finish_reason)
        logger.debug(
            "Model reply: %d tool call(s), stop_reason=%s", len(reply.tool_calls), reply.stop_reason
        )
        return reply


def to_groq_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool.get("description", ""),
                "parameters": tool["input_schema"],
            },
        }
        for tool in tools
    ]


def parse_message(message: Any, finish_reason: str | None = None) -> ModelReply:
    """Read text and tool calls from a chat-completion message.

    Arguments arrive as a JSON string; one that does not decode to an object
    becomes ``{}`` so validation reports the missing fields.
    """
    calls: list[ToolCall] = []
    for tc in message.tool_calls or []:
        try:
            arguments = json.loads(tc.function.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("Undecodable arguments for %s: %r", tc.function.name, tc.function.arguments)
            arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}
        calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))
    return ModelReply(text=message.content or "", tool_calls=calls, stop_reason=finish_reason)


def to_groq_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Translate neutral messages; each tool outcome becomes its own ``tool`` message."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if isinstance(msg, UserMessage):
            converted.append({"role": "user", "content": msg.text})
        elif isinstance(msg, AssistantMessage):
            entry: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
            if msg.tool_calls:
                entry["tool_calls"] = [
                    {
                        "id": c.id,
                        "type": "function",
                        "function": {"name": c.name, "arguments": json.dumps(c.arguments)},
                    }
                    for c in msg.tool_calls
                ]
            converted.append(entry)
        elif isinstance(msg, ToolResultsMessage):
            converted.extend(
                {"role": "tool", "tool_call_id": o.call_id, "content": json.dumps(o.content)}
                for o in msg.outcomes
            )
    return converted
