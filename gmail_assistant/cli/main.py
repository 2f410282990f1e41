"""CLI entry point for the Gmail assistant."""

import logging

import click
from dotenv import load_dotenv

from gmail_assistant.config import Settings

logger = logging.getLogger(__name__)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Natural-language Gmail assistant — chat, auth, and MCP server commands."""
    load_dotenv()
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),  # WARNING keeps chat output clean
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    ctx.obj = settings


# Import and register commands after cli is defined to avoid circular imports.
from gmail_assistant.cli.commands import auth, chat, mcp  # noqa: E402

cli.add_command(chat)
cli.add_command(auth)
cli.add_command(mcp)
