"""CLI command implementations."""

import asyncio
import logging

import click
from rich.markup import escape

from gmail_assistant.cli.assistant import Assistant, console_confirmer, run_chat
from gmail_assistant.cli.display import console
from gmail_assistant.config import Settings
from gmail_assistant.gmail.auth import AuthError, get_gmail_credentials
from gmail_assistant.gmail.client import create_gmail_client
from gmail_assistant.llm.backends import BACKENDS, create_model
from gmail_assistant.mcp.server import serve
from gmail_assistant.safety.confirmation import ConfirmationGate, fixed_answer
from gmail_assistant.session.context import SessionContext
from gmail_assistant.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--backend",
    type=click.Choice(sorted(BACKENDS)),
    default=None,
    help="Model backend (overrides ASSISTANT_BACKEND).",
)
@click.pass_obj
def chat(settings: Settings, backend: str | None) -> None:
    """Start the interactive assistant."""
    if backend and backend != settings.backend:
        settings = Settings.from_env(backend)
    if not settings.api_key:
        console.print(f"[red]Error: {settings.api_key_var} environment variable not set[/red]")
        console.print(f'[yellow]Add it to .env: {settings.api_key_var}="your-key-here"[/yellow]')
        raise SystemExit(1)

    try:
        gmail = create_gmail_client(
            settings.token_path, settings.credentials_path, timeout=settings.request_timeout
        )
    except AuthError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        console.print("[yellow]Gmail auth needed. Run: gmail-assistant auth[/yellow]")
        raise SystemExit(1)

    context = SessionContext(settings.history_turns)
    dispatcher = ToolDispatcher(gmail, context, ConfirmationGate(console_confirmer(console)))
    model = create_model(
        settings.backend, api_key=settings.api_key, model=settings.model, max_tokens=settings.max_tokens
    )
    logger.info("Chat backend: %s (%s)", settings.backend, settings.model)
    assistant = Assistant(model, dispatcher, max_tool_rounds=settings.max_tool_rounds, out=console)
    raise SystemExit(run_chat(assistant, gmail, out=console))


@click.command()
@click.pass_obj
def auth(settings: Settings) -> None:
    """Authorize Gmail access in the browser and save the token."""
    try:
        get_gmail_credentials(settings.token_path, settings.credentials_path, interactive=True)
    except AuthError as exc:
        console.print(f"[red]Authentication failed: {escape(str(exc))}[/red]")
        raise SystemExit(1)
    console.print(f"[green]✓ Gmail token saved to {settings.token_path}[/green]")


@click.command()
@click.pass_obj
def mcp(settings: Settings) -> None:
    """Serve the Gmail tools to MCP clients over stdio."""
    try:
        gmail = create_gmail_client(
            settings.token_path, settings.credentials_path, timeout=settings.request_timeout
        )
    except AuthError as exc:
        logger.error("Gmail authentication failed: %s", exc)
        raise SystemExit(1)

    gate = ConfirmationGate(fixed_answer(settings.mcp_allow_destructive))
    dispatcher = ToolDispatcher(gmail, SessionContext(settings.history_turns), gate)
    asyncio.run(serve(dispatcher))
