"""Tests for the click entry point — Gmail, the model and the REPL are patched."""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner, Result

from gmail_assistant.gmail.auth import AuthError


# ── Helpers ────────────────────────────────────────────────────────────────────


def _invoke(*args: str) -> Result:
    from gmail_assistant.cli.main import cli

    runner = CliRunner()
    with patch("gmail_assistant.cli.main.load_dotenv"):
        return runner.invoke(cli, list(args), catch_exceptions=False)


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ASSISTANT_BACKEND", "ASSISTANT_MODEL", "GEMINI_API_KEY", "GOOGLE_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("GMAIL_TOKEN_PATH", "tok.json")
    monkeypatch.setenv("GMAIL_CREDENTIALS_PATH", "creds.json")


# ── chat ───────────────────────────────────────────────────────────────────────


class TestChatCommand:
    def test_missing_api_key_exits_1(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        with patch("gmail_assistant.cli.commands.create_gmail_client") as create:
            result = _invoke("chat")
        assert result.exit_code == 1
        assert "ANTHROPIC_API_KEY" in result.output
        create.assert_not_called()

    def test_auth_failure_exits_1(self) -> None:
        with patch(
            "gmail_assistant.cli.commands.create_gmail_client", side_effect=AuthError("No valid Gmail token")
        ):
            result = _invoke("chat")
        assert result.exit_code == 1
        assert "gmail-assistant auth" in result.output

    def test_runs_repl_and_uses_its_exit_code(self) -> None:
        gmail = MagicMock()
        with patch("gmail_assistant.cli.commands.create_gmail_client", return_value=gmail) as create, patch(
            "gmail_assistant.cli.commands.run_chat", return_value=0
        ) as run, patch("gmail_assistant.cli.commands.create_model") as create_model:
            result = _invoke("chat")

        assert result.exit_code == 0
        create.assert_called_once_with("tok.json", "creds.json", timeout=30.0)
        create_model.assert_called_once_with(
            "anthropic", api_key="sk-test", model="claude-sonnet-4-6", max_tokens=1024
        )
        assistant, passed_gmail = run.call_args.args
        assert passed_gmail is gmail

    def test_backend_option_needs_that_backends_key(self) -> None:
        with patch("gmail_assistant.cli.commands.create_gmail_client") as create:
            result = _invoke("chat", "--backend", "groq")
        assert result.exit_code == 1
        assert "GROQ_API_KEY" in result.output
        create.assert_not_called()

    def test_backend_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ASSISTANT_BACKEND", "gemini")
        monkeypatch.setenv("GOOGLE_API_KEY", "g-test")
        with patch("gmail_assistant.cli.commands.create_gmail_client"), patch(
            "gmail_assistant.cli.commands.run_chat", return_value=0
        ), patch("gmail_assistant.cli.commands.create_model") as create_model:
            result = _invoke("chat")

        assert result.exit_code == 0
        create_model.assert_called_once_with(
            "gemini", api_key="g-test", model="gemini-2.5-flash", max_tokens=1024
        )

    def test_unknown_backend_option_is_usage_error(self) -> None:
        result = _invoke("chat", "--backend", "llama.cpp")
        assert result.exit_code == 2


# ── auth ───────────────────────────────────────────────────────────────────────


class TestAuthCommand:
    def test_success(self) -> None:
        with patch("gmail_assistant.cli.commands.get_gmail_credentials") as get:
            result = _invoke("auth")
        assert result.exit_code == 0
        get.assert_called_once_with("tok.json", "creds.json", interactive=True)
        assert "token saved" in result.output

    def test_failure_exits_1(self) -> None:
        with patch("gmail_assistant.cli.commands.get_gmail_credentials", side_effect=AuthError("denied")):
            result = _invoke("auth")
        assert result.exit_code == 1
        assert "denied" in result.output


# ── mcp ────────────────────────────────────────────────────────────────────────


class TestMcpCommand:
    def test_serves_with_declining_gate_by_default(self) -> None:
        captured = {}

        async def _serve(dispatcher: object) -> None:
            captured["dispatcher"] = dispatcher

        with patch("gmail_assistant.cli.commands.create_gmail_client"), patch(
            "gmail_assistant.cli.commands.serve", _serve
        ), patch("gmail_assistant.cli.commands.fixed_answer") as fixed:
            result = _invoke("mcp")

        assert result.exit_code == 0
        fixed.assert_called_once_with(False)
        assert "dispatcher" in captured

    def test_auth_failure_exits_1(self) -> None:
        with patch("gmail_assistant.cli.commands.create_gmail_client", side_effect=AuthError("no token")):
            result = _invoke("mcp")
        assert result.exit_code == 1
