"""Tests for the MCP server surface — the dispatcher is real, Gmail is mocked."""

import json
from unittest.mock import AsyncMock

import pytest
from mcp.server import Server

from gmail_assistant.gmail.client import GmailClient
from gmail_assistant.gmail.types import BatchOperation, BatchResult, Label, SearchResult
from gmail_assistant.mcp.server import ToolCallFailed, call_tool, create_server, tool_specs
from gmail_assistant.safety.confirmation import ConfirmationGate, fixed_answer
from gmail_assistant.session.context import SessionContext
from gmail_assistant.tools.dispatcher import ToolDispatcher
from gmail_assistant.tools.schemas import TOOL_DEFINITIONS


@pytest.fixture
def gmail() -> AsyncMock:
    g = AsyncMock(spec=GmailClient)
    g.list_labels.return_value = [Label(id="INBOX", name="INBOX", type="system")]
    return g


def _dispatcher(gmail: AsyncMock, *, allow_destructive: bool = False) -> ToolDispatcher:
    return ToolDispatcher(gmail, SessionContext(), ConfirmationGate(fixed_answer(allow_destructive)))


class TestToolSpecs:
    def test_same_surface_as_chat(self) -> None:
        specs = tool_specs()
        assert [t.name for t in specs] == [d["name"] for d in TOOL_DEFINITIONS]
        assert specs[0].inputSchema["required"] == ["query"]

    def test_create_server(self, gmail: AsyncMock) -> None:
        assert isinstance(create_server(_dispatcher(gmail)), Server)


class TestCallTool:
    async def test_success_is_json_text(self, gmail: AsyncMock) -> None:
        gmail.search.return_value = SearchResult(messages=[], query="x", total=0)

        content = await call_tool(_dispatcher(gmail), "search_emails", {"query": "x"})

        assert len(content) == 1
        assert json.loads(content[0].text) == {"messages": [], "query": "x", "total": 0}
        assert content[0].text.startswith("{\n  ")

    async def test_error_raises_with_payload(self, gmail: AsyncMock) -> None:
        with pytest.raises(ToolCallFailed) as info:
            await call_tool(_dispatcher(gmail), "search_emails", {})
        assert json.loads(str(info.value))["kind"] == "invalid_arguments"

    async def test_unknown_tool(self, gmail: AsyncMock) -> None:
        with pytest.raises(ToolCallFailed, match="unknown_tool"):
            await call_tool(_dispatcher(gmail), "nuke", None)

    async def test_destructive_declined_by_default(self, gmail: AsyncMock) -> None:
        content = await call_tool(_dispatcher(gmail), "batch_operation", {"query": "x", "operation": "delete"})

        assert json.loads(content[0].text) == {"cancelled": True, "operation": "delete"}
        gmail.batch_operate.assert_not_called()

    async def test_destructive_allowed_when_configured(self, gmail: AsyncMock) -> None:
        gmail.batch_operate.return_value = BatchResult(BatchOperation.ARCHIVE, "x", ["a", "b"])

        content = await call_tool(
            _dispatcher(gmail, allow_destructive=True), "batch_operation", {"query": "x", "operation": "archive"}
        )

        assert json.loads(content[0].text)["affected"] == 2
