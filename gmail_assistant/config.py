"""Environment-driven settings, read once at startup after ``load_dotenv()``."""

import logging
import os
from dataclasses import dataclass

from gmail_assistant.gmail.client import DEFAULT_TIMEOUT_SECONDS
from gmail_assistant.llm.anthropic_model import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from gmail_assistant.llm.backends import BACKENDS, DEFAULT_BACKEND
from gmail_assistant.session.context import DEFAULT_HISTORY_TURNS

logger = logging.getLogger(__name__)

MIN_HISTORY_TURNS = 10
MAX_HISTORY_TURNS = 20


@dataclass
class Settings:
    backend: str = DEFAULT_BACKEND
    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    history_turns: int = DEFAULT_HISTORY_TURNS
    max_tool_rounds: int = 5
    credentials_path: str = "credentials.json"
    token_path: str = "token.json"
    request_timeout: float = DEFAULT_TIMEOUT_SECONDS
    mcp_allow_destructive: bool = False
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, backend: str | None = None) -> "Settings":
        """Build Settings from environment variables.

        ``backend`` overrides ``ASSISTANT_BACKEND``; the API key and default
        model follow whichever backend is selected.
        """
        name = backend or _backend_env()
        selected = BACKENDS[name]
        turns = _int_env("ASSISTANT_HISTORY_TURNS", DEFAULT_HISTORY_TURNS)
        return cls(
            backend=name,
            api_key=next((os.environ[v] for v in selected.key_vars if os.environ.get(v)), ""),
            model=os.environ.get("ASSISTANT_MODEL") or selected.default_model,
            max_tokens=_int_env("ASSISTANT_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            history_turns=min(max(turns, MIN_HISTORY_TURNS), MAX_HISTORY_TURNS),
            max_tool_rounds=_int_env("ASSISTANT_MAX_TOOL_ROUNDS", 5),
            credentials_path=os.environ.get("GMAIL_CREDENTIALS_PATH", "credentials.json"),
            token_path=os.environ.get("GMAIL_TOKEN_PATH", "token.json"),
            request_timeout=_float_env("GMAIL_REQUEST_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
            mcp_allow_destructive=os.environ.get("GMAIL_MCP_ALLOW_DESTRUCTIVE", "false").lower() == "true",
            log_level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
        )

    @property
    def api_key_var(self) -> str:
        """The variable users should set for the selected backend's key."""
        return BACKENDS[self.backend].key_vars[0]


def _backend_env() -> str:
    raw = os.environ.get("ASSISTANT_BACKEND", "").strip().lower()
    if not raw:
        return DEFAULT_BACKEND
    if raw not in BACKENDS:
        logger.warning(
            "Ignoring unknown ASSISTANT_BACKEND=%r (choose from %s); using %s",
            raw, ", ".join(sorted(BACKENDS)), DEFAULT_BACKEND,
        )
        return DEFAULT_BACKEND
    return raw


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %d", name, raw, default)
        return default
    if value < 1:
        logger.warning("Ignoring non-positive %s=%r; using %d", name, raw, default)
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %g", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %g", name, raw, default)
        return default
    return value
