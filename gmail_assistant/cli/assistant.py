"""Interactive chat loop driving the model and the tool dispatcher.

One command is processed to completion before the next prompt is shown.  The
loop owns a single ``asyncio.Runner``: terminal input is read between commands,
and each command runs on the runner, so Ctrl+C at the prompt exits while
Ctrl+C mid-command abandons only that command.
"""

import asyncio
import logging

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from gmail_assistant.cli.display import console, render_result
from gmail_assistant.cli.prompts import build_system_prompt
from gmail_assistant.gmail.client import GmailAPIError, GmailClient
from gmail_assistant.llm.base import (
    AssistantMessage,
    ChatMessage,
    ConversationalModel,
    ModelRateLimitError,
    ToolOutcome,
    ToolResultsMessage,
    UserMessage,
)
from gmail_assistant.safety.confirmation import ConfirmationRequest, Confirmer
from gmail_assistant.tools.dispatcher import ToolDispatcher
from gmail_assistant.tools.schemas import TOOL_DEFINITIONS

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 5

HELP_TEXT = """\
[bold]Gmail Assistant - Help[/bold]

[yellow]Natural language examples:[/yellow]
  • "Show my unread emails"
  • "Read the most recent email from Shopify"
  • "Create a label called Work/Shopify"
  • "Move this email to the Shopify label"
  • "Star those emails"
  • "Archive all promotional emails"

[yellow]Context-aware commands:[/yellow]
  • After reading an email: "move it to Work"
  • After searching: "mark them all as read"
  • "Reply to this email" (after reading)

[yellow]Commands:[/yellow]
  • clear - Clear the screen
  • help  - Show this help message
  • exit  - Quit the assistant (also: quit)
"""

_BANNER = "[bold green]📨 Gmail Assistant[/bold green]"
_RATE_LIMIT_TIP = "Tip: the model API is rate limiting requests. Wait a moment and try again."


def console_confirmer(out: Console = console) -> Confirmer:
    """Confirmer that prints the request and asks yes/no on the terminal (default no)."""

    async def _confirm(request: ConfirmationRequest) -> bool:
        out.print("\n[bold yellow]⚠  Confirmation required[/bold yellow]")
        out.print(f"Action: {escape(request.action)}")
        out.print(f"[dim]Details: {escape(request.details)}[/dim]")
        return Confirm.ask("Do you want to proceed?", default=False, console=out)

    return _confirm


class Assistant:
    """Drives the model → tools → model loop for one user command at a time."""

    def __init__(
        self,
        model: ConversationalModel,
        dispatcher: ToolDispatcher,
        *,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
        out: Console = console,
    ) -> None:
        self._model = model
        self._dispatcher = dispatcher
        self._context = dispatcher.context
        self._max_tool_rounds = max_tool_rounds
        self._out = out

    async def handle(self, text: str) -> str:
        """Run one command and return the assistant's final text."""
        messages: list[ChatMessage] = self._history_messages()
        messages.append(UserMessage(text))
        replies: list[str] = []

        for _ in range(self._max_tool_rounds):
            with self._out.status("[dim]Thinking...[/dim]", spinner="dots"):
                reply = await self._model.complete(
                    build_system_prompt(self._context), messages, TOOL_DEFINITIONS
                )
            if reply.text:
                replies.append(reply.text)
                self._out.print(f"\n[cyan]{escape(reply.text)}[/cyan]")
            if not reply.tool_calls:
                break

            messages.append(AssistantMessage(reply.text, reply.tool_calls))
            outcomes: list[ToolOutcome] = []
            for call in reply.tool_calls:
                logger.debug("Tool call %s(%s)", call.name, call.arguments)
                self._out.print(f"[dim]→ {call.name}[/dim]")
                result = await self._dispatcher.dispatch(call.name, call.arguments)
                render_result(result, self._out)
                outcomes.append(ToolOutcome(call.id, result.to_payload(), is_error=not result.ok))
            messages.append(ToolResultsMessage(outcomes))
        else:
            logger.warning("Stopped after %d tool rounds", self._max_tool_rounds)
            self._out.print(
                f"[yellow]Stopped after {self._max_tool_rounds} tool rounds.[/yellow]"
            )

        final = "\n".join(replies)
        self._context.record_exchange(text, final)
        return final

    async def process(self, text: str) -> None:
        """``handle`` with every failure rendered instead of raised."""
        try:
            await self.handle(text)
        except ModelRateLimitError as exc:
            self._out.print(f"[red]Failed to process command: {escape(str(exc))}[/red]")
            self._out.print(f"[yellow]{_RATE_LIMIT_TIP}[/yellow]")
        except Exception as exc:  # noqa: BLE001
            logger.error("Command failed: %s", exc, exc_info=True)
            self._out.print(f"[red]Failed to process command: {escape(str(exc))}[/red]")

    async def warm_up(self) -> None:
        """Load the label cache so the first prompt can name the user's labels."""
        result = await self._dispatcher.dispatch("list_labels", {})
        if not result.ok:
            logger.warning("Could not load labels at startup: %s", result.error)

    def _history_messages(self) -> list[ChatMessage]:
        return [
            UserMessage(turn.text) if turn.role == "user" else AssistantMessage(turn.text)
            for turn in self._context.history
        ]


def run_chat(assistant: Assistant, gmail: GmailClient, out: Console = console) -> int:
    """Run the read loop until exit.  Returns the process exit code."""
    with asyncio.Runner() as runner:
        try:
            address = runner.run(gmail.get_profile())
        except GmailAPIError as exc:
            out.print(f"[red]Could not connect to Gmail: {escape(str(exc))}[/red]")
            out.print("[yellow]Run `gmail-assistant auth` to sign in again.[/yellow]")
            return 1

        out.print(_BANNER)
        out.print(f"[green]✓ Connected to Gmail as {escape(address)}[/green]")
        out.print('[dim]Try: "show my unread emails" or "help" for more[/dim]\n')
        runner.run(assistant.warm_up())

        while True:
            try:
                line = out.input("[bold green]You:[/bold green] ").strip()
            except (EOFError, KeyboardInterrupt):
                break

            command = line.lower()
            if not command:
                continue
            if command in ("exit", "quit"):
                break
            if command == "help":
                out.print(HELP_TEXT)
                continue
            if command == "clear":
                out.clear()
                out.print(_BANNER)
                continue

            try:
                runner.run(assistant.process(line))
            except KeyboardInterrupt:
                out.print("\n[yellow]Interrupted.[/yellow]")

    out.print("\n[yellow]Goodbye! 👋[/yellow]")
    return 0
