"""Model backends the chat loop can run on, and how to build each adapter."""

from collections.abc import Callable
from dataclasses import dataclass

from gmail_assistant.llm import anthropic_model, gemini_model, groq_model
from gmail_assistant.llm.base import ConversationalModel


@dataclass(frozen=True)
class Backend:
    name: str
    # API key variables, checked in order
    key_vars: tuple[str, ...]
    default_model: str
    adapter: Callable[..., ConversationalModel]


BACKENDS: dict[str, Backend] = {
    "anthropic": Backend(
        "anthropic", ("ANTHROPIC_API_KEY",), anthropic_model.DEFAULT_MODEL, anthropic_model.AnthropicModel
    ),
    "gemini": Backend(
        "gemini", ("GEMINI_API_KEY", "GOOGLE_API_KEY"), gemini_model.DEFAULT_MODEL, gemini_model.GeminiModel
    ),
    "groq": Backend("groq", ("GROQ_API_KEY",), groq_model.DEFAULT_MODEL, groq_model.GroqModel),
}

DEFAULT_BACKEND = "anthropic"


def create_model(backend: str, *, api_key: str, model: str, max_tokens: int) -> ConversationalModel:
    """Build the adapter for ``backend``.  Raises KeyError for an unknown name."""
    return BACKENDS[backend].adapter(api_key=api_key, model=model, max_tokens=max_tokens)
