"""MCP stdio server exposing the Gmail tool surface to external clients.

Calls go through the same ``ToolDispatcher`` as the chat loop, so validation,
reference resolution and the confirmation gate behave identically.  stdout is
the protocol channel; logging must stay on stderr.
"""

import json
import logging
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from gmail_assistant.tools.dispatcher import ToolDispatcher
from gmail_assistant.tools.schemas import TOOL_DEFINITIONS

logger = logging.getLogger(__name__)

SERVER_NAME = "gmail-assistant"
SERVER_VERSION = "0.1.0"


class ToolCallFailed(Exception):
    """Raised inside the call handler so the SDK marks the result ``isError``.

    The message is the JSON error payload.
    """


def tool_specs() -> list[types.Tool]:
    return [
        types.Tool(name=d["name"], description=d["description"], inputSchema=d["input_schema"])
        for d in TOOL_DEFINITIONS
    ]


async def call_tool(
    dispatcher: ToolDispatcher, name: str, arguments: dict[str, Any] | None
) -> list[types.TextContent]:
    """Dispatch one call and return its JSON payload as text content.

    Raises:
        ToolCallFailed: for every error result, carrying the error payload.
    """
    result = await dispatcher.dispatch(name, arguments or {})
    text = json.dumps(result.to_payload(), indent=2)
    if not result.ok:
        logger.warning("MCP tool %s failed: %s", name, result.error.message if result.error else "")
        raise ToolCallFailed(text)
    return [types.TextContent(type="text", text=text)]


def create_server(dispatcher: ToolDispatcher) -> Server:
    app: Server = Server(SERVER_NAME)

    @app.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return tool_specs()

    @app.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any] | None) -> list[types.TextContent]:
        return await call_tool(dispatcher, name, arguments)

    return app


async def serve(dispatcher: ToolDispatcher) -> None:
    """Run the server on stdin/stdout until the client disconnects."""
    app = create_server(dispatcher)
    logger.info("Starting %s MCP server on stdio", SERVER_NAME)
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            InitializationOptions(
                server_name=SERVER_NAME,
                server_version=SERVER_VERSION,
                capabilities=app.get_capabilities(
                    notification_options=NotificationOptions(),
                    experimental_capabilities={},
                ),
            ),
        )
