"""Gemini adapter for the conversational-model capability."""

import logging
import os
from typing import Any

from google import genai
from google.genai import errors, types

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

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_MAX_TOKENS = 1024


class GeminiModel:
    """Gemini function calling behind the ``ConversationalModel`` interface."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: genai.Client | None = None,
    ) -> None:
        self._client = client or genai.Client(
            api_key=api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        )
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        system: str,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]],
    ) -> ModelReply:
        config = types.GenerateContentConfig(
            system_instruction=system,
            max_output_tokens=self._max_tokens,
            tools=[types.Tool(function_declarations=to_function_declarations(tools))],
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model,
                contents=to_gemini_contents(messages),
                config=config,
            )
        except errors.APIError as exc:
            if exc.code == 429:
                raise ModelRateLimitError("Gemini", exc) from exc
            raise
        reply = parse_response(response)
        logger.debug(
            "Model reply: %d tool call(s), stop_reason=%s", len(reply.tool_calls), reply.stop_reason
        )
        return reply


def to_function_declarations(tools: list[dict[str, Any]]) -> list[types.FunctionDeclaration]:
    return [
        types.FunctionDeclaration(
            name=tool["name"],
            description=tool.get("description", ""),
            parameters_json_schema=tool["input_schema"],
        )
        for tool in tools
    ]


def parse_response(response: types.GenerateContentResponse) -> ModelReply:
    """Collect text parts and function calls from the first candidate.

    Gemini may omit call IDs; positional ones are generated so tool results
    can still be paired with their calls.
    """
    if not response.candidates:
        return ModelReply()
    candidate = response.candidates[0]
    stop_reason = candidate.finish_reason.value if candidate.finish_reason else None
    parts = candidate.content.parts if candidate.content and candidate.content.parts else []

    texts: list[str] = []
    calls: list[ToolCall] = []
    for part in parts:
        if part.thought:
            continue
        if part.function_call is not None:
            fc = part.function_call
            calls.append(ToolCall(
                id=fc.id or f"call_{len(calls) + 1}",
                name=fc.name or "",
                arguments=dict(fc.args or {}),
            ))
        elif part.text:
            texts.append(part.text)
    return ModelReply(text="\n".join(texts), tool_calls=calls, stop_reason=stop_reason)


def to_gemini_contents(messages: list[ChatMessage]) -> list[types.Content]:
    """Translate neutral messages into ``contents``; tool results are matched to calls by ID."""
    contents: list[types.Content] = []
    call_names: dict[str, str] = {}
    for msg in messages:
        if isinstance(msg, UserMessage):
            contents.append(types.Content(role="user", parts=[types.Part(text=msg.text)]))
        elif isinstance(msg, AssistantMessage):
            parts: list[types.Part] = []
            if msg.text:
                parts.append(types.Part(text=msg.text))
            for call in msg.tool_calls:
                call_names[call.id] = call.name
                parts.append(types.Part(
                    function_call=types.FunctionCall(name=call.name, args=call.arguments)
                ))
            if parts:
                contents.append(types.Content(role="model", parts=parts))
        elif isinstance(msg, ToolResultsMessage):
            contents.append(types.Content(
                role="user",
                parts=[
                    types.Part(function_response=types.FunctionResponse(
                        name=call_names.get(o.call_id, o.call_id), response=o.content
                    ))
                    for o in msg.outcomes
                ],
            ))
    return contents
