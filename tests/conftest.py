"""Shared pytest fixtures."""

from unittest.mock import MagicMock

import pytest

from gmail_assistant.gmail.types import EmailSummary, Label
from gmail_assistant.session.context import SessionContext


@pytest.fixture
def gmail_service() -> MagicMock:
    """A stand-in for the discovery ``Resource``; chained calls share return values."""
    return MagicMock()


@pytest.fixture
def search_hits() -> list[EmailSummary]:
    """Three search hits, newest first."""
    return [
        EmailSummary(
            id="m1",
            thread_id="t1",
            subject="Order shipped",
            sender="Shopify <noreply@shopify.com>",
            date="Mon, 2 Mar 2026 09:00:00 +0000",
            snippet="Your order is on the way",
            label_ids=["INBOX", "UNREAD"],
        ),
        EmailSummary(id="m2", thread_id="t2", subject="Standup notes", sender="alice@example.com"),
        EmailSummary(id="m3", thread_id="t3", subject="Invoice", sender="billing@example.com"),
    ]


@pytest.fixture
def labels() -> list[Label]:
    return [
        Label(id="INBOX", name="INBOX", type="system"),
        Label(id="UNREAD", name="UNREAD", type="system"),
        Label(id="Label_1", name="Work", type="user"),
        Label(id="Label_2", name="Work/Shopify", type="user"),
    ]


@pytest.fixture
def context(search_hits: list[EmailSummary], labels: list[Label]) -> SessionContext:
    """A session that has already searched and cached labels."""
    ctx = SessionContext()
    ctx.record_search(search_hits)
    ctx.refresh_labels(labels)
    return ctx
