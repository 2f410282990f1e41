"""Tests for GmailClient — the discovery service is mocked."""

import asyncio
import base64
from email import message_from_bytes
from typing import Any
from unittest.mock import MagicMock

import pytest

from gmail_assistant.gmail.client import (
    BATCH_LIMIT,
    GmailAPIError,
    GmailClient,
    GmailNotInitializedError,
    GmailTimeoutError,
    build_raw_message,
    collect_attachments,
    find_plain_text,
)
from gmail_assistant.gmail.types import BatchOperation


# ── Helpers ────────────────────────────────────────────────────────────────────


def _request(result: Any = None, error: Exception | None = None) -> MagicMock:
    req = MagicMock()
    if error is not None:
        req.execute.side_effect = error
    else:
        req.execute.return_value = result
    return req


def _messages(service: MagicMock) -> MagicMock:
    return service.users.return_value.messages.return_value


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")


def _metadata(mid: str, subject: str, labels: list[str]) -> dict[str, Any]:
    return {
        "id": mid,
        "threadId": f"t_{mid}",
        "snippet": f"snippet {mid}",
        "labelIds": labels,
        "payload": {
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": "alice@example.com"},
                {"name": "To", "value": "me@example.com"},
                {"name": "Date", "value": "Mon, 2 Mar 2026 09:00:00 +0000"},
            ]
        },
    }


@pytest.fixture
def client(gmail_service: MagicMock) -> GmailClient:
    return GmailClient(gmail_service, timeout=5)


# ── search ─────────────────────────────────────────────────────────────────────


class TestSearch:
    async def test_no_matches_is_empty_result(self, client: GmailClient, gmail_service: MagicMock) -> None:
        _messages(gmail_service).list.return_value = _request({"resultSizeEstimate": 0})

        result = await client.search("from:nobody")

        assert result.messages == []
        assert result.total == 0
        assert result.query == "from:nobody"
        _messages(gmail_service).get.assert_not_called()

    async def test_returns_metadata_in_listing_order(
        self, client: GmailClient, gmail_service: MagicMock
    ) -> None:
        msgs = _messages(gmail_service)
        msgs.list.return_value = _request({
            "messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2", "threadId": "t2"}],
            "resultSizeEstimate": 5,
        })
        msgs.get.side_effect = lambda **kw: _request(
            _metadata(kw["id"], f"Subject {kw['id']}", ["INBOX", "UNREAD"])
        )

        result = await client.search("is:unread", max_results=2)

        assert result.ids == ["m1", "m2"]
        assert result.total == 5
        assert all(m.is_unread for m in result.messages)
        assert result.messages[0].subject == "Subject m1"
        assert result.messages[0].sender == "alice@example.com"
        msgs.list.assert_called_once_with(userId="me", q="is:unread", maxResults=2)
        assert msgs.get.call_count == 2
        assert msgs.get.call_args.kwargs["format"] == "metadata"

    async def test_listing_failure_names_operation(
        self, client: GmailClient, gmail_service: MagicMock
    ) -> None:
        _messages(gmail_service).list.return_value = _request(error=RuntimeError("quota exceeded"))

        with pytest.raises(GmailAPIError, match="Failed to search emails: quota exceeded") as info:
            await client.search("anything")
        assert info.value.operation == "search emails"
        assert isinstance(info.value.__cause__, RuntimeError)


# ── read ───────────────────────────────────────────────────────────────────────


class TestRead:
    async def test_prefers_nested_plain_text_and_collects_attachments(
        self, client: GmailClient, gmail_service: MagicMock
    ) -> None:
        _messages(gmail_service).get.return_value = _request({
            "id": "m1",
            "threadId": "t1",
            "snippet": "snip",
            "labelIds": ["INBOX"],
            "payload": {
                "headers": [
                    {"name": "subject", "value": "Hello"},
                    {"name": "Cc", "value": "c@x.com"},
                    {"name": "Message-Id", "value": "<abc@mail.example.com>"},
                ],
                "parts": [
                    {
                        "mimeType": "multipart/alternative",
                        "parts": [
                            {"mimeType": "text/html", "body": {"data": _b64("<p>hi</p>")}},
                            {"mimeType": "text/plain", "body": {"data": _b64("plain body")}},
                        ],
                    },
                    {
                        "mimeType": "application/pdf",
                        "filename": "invoice.pdf",
                        "body": {"attachmentId": "att1", "size": 1234},
                    },
                ],
            },
        })

        email = await client.read("m1")

        assert email.body == "plain body"
        assert email.subject == "Hello"
        assert email.cc == "c@x.com"
        assert email.rfc_message_id == "<abc@mail.example.com>"
        assert [a.filename for a in email.attachments] == ["invoice.pdf"]
        assert email.attachments[0].size == 1234
        _messages(gmail_service).get.assert_called_once_with(userId="me", id="m1", format="full")

    async def test_falls_back_to_top_level_body(self, client: GmailClient, gmail_service: MagicMock) -> None:
        _messages(gmail_service).get.return_value = _request({
            "id": "m1",
            "snippet": "snip",
            "payload": {"headers": [], "body": {"data": _b64("single part")}},
        })

        email = await client.read("m1")

        assert email.body == "single part"

    async def test_falls_back_to_snippet(self, client: GmailClient, gmail_service: MagicMock) -> None:
        _messages(gmail_service).get.return_value = _request({
            "id": "m1",
            "snippet": "only a snippet",
            "payload": {"headers": [], "parts": [{"mimeType": "text/html", "body": {"data": _b64("<b>x</b>")}}]},
        })

        email = await client.read("m1")

        assert email.body == "only a snippet"


class TestMimeHelpers:
    def test_find_plain_text_returns_none_without_plain_part(self) -> None:
        assert find_plain_text([{"mimeType": "text/html", "body": {"data": _b64("x")}}]) is None

    def test_attachments_require_filename_and_id(self) -> None:
        parts = [
            {"filename": "a.txt", "body": {"attachmentId": "1", "size": 3}},
            {"filename": "", "body": {"attachmentId": "2"}},
            {"filename": "inline.png", "body": {"size": 10}},
        ]
        assert [a.attachment_id for a in collect_attachments(parts)] == ["1"]


# ── modify / batch ─────────────────────────────────────────────────────────────


class TestModifyLabels:
    async def test_one_call_per_message(self, client: GmailClient, gmail_service: MagicMock) -> None:
        msgs = _messages(gmail_service)
        msgs.modify.side_effect = lambda **kw: _request({"id": kw["id"], "labelIds": ["STARRED"]})

        result = await client.modify_labels(["m1", "m2", "m3"], add=["STARRED"])

        assert result.modified == 3
        assert msgs.modify.call_count == 3
        bodies = [c.kwargs["body"] for c in msgs.modify.call_args_list]
        assert bodies == [{"addLabelIds": ["STARRED"], "removeLabelIds": []}] * 3
        assert result.to_payload()["modified"] == 3


class TestBatchOperate:
    async def test_unknown_operation_is_value_error(self, client: GmailClient) -> None:
        with pytest.raises(ValueError, match="Unknown batch operation"):
            await client.batch_operate("is:unread", "explode")

    async def test_delete_trashes_each_message(self, client: GmailClient, gmail_service: MagicMock) -> None:
        msgs = _messages(gmail_service)
        msgs.list.return_value = _request({"messages": [{"id": "a"}, {"id": "b"}]})
        msgs.trash.return_value = _request({})

        result = await client.batch_operate("older_than:1y", BatchOperation.DELETE)

        assert result.message_ids == ["a", "b"]
        assert result.to_payload() == {
            "operation": "delete",
            "query": "older_than:1y",
            "affected": 2,
            "messageIds": ["a", "b"],
        }
        assert msgs.trash.call_count == 2
        msgs.modify.assert_not_called()
        msgs.list.assert_called_once_with(userId="me", q="older_than:1y", maxResults=BATCH_LIMIT)

    async def test_mark_read_removes_unread(self, client: GmailClient, gmail_service: MagicMock) -> None:
        msgs = _messages(gmail_service)
        msgs.list.return_value = _request({"messages": [{"id": "a"}]})
        msgs.modify.return_value = _request({})

        await client.batch_operate("is:unread", "markRead")

        msgs.modify.assert_called_once_with(
            userId="me", id="a", body={"addLabelIds": [], "removeLabelIds": ["UNREAD"]}
        )

    async def test_no_matches_touches_nothing(self, client: GmailClient, gmail_service: MagicMock) -> None:
        _messages(gmail_service).list.return_value = _request({})

        result = await client.batch_operate("label:none", "archive")

        assert result.affected == 0
        _messages(gmail_service).modify.assert_not_called()


# ── send ───────────────────────────────────────────────────────────────────────


class TestSend:
    async def test_raw_payload_has_subject_and_body(
        self, client: GmailClient, gmail_service: MagicMock
    ) -> None:
        msgs = _messages(gmail_service)
        msgs.send.return_value = _request({"id": "s1", "threadId": "t9"})

        sent = await client.send(["a@x.com"], "S", "B")

        raw = msgs.send.call_args.kwargs["body"]["raw"]
        decoded = base64.urlsafe_b64decode(raw).decode()
        assert "Subject: S" in decoded
        assert "\nB" in decoded.replace("\r\n", "\n")
        assert sent.id == "s1"
        assert "threadId" not in msgs.send.call_args.kwargs["body"]

    async def test_thread_id_passed_through(self, client: GmailClient, gmail_service: MagicMock) -> None:
        msgs = _messages(gmail_service)
        msgs.send.return_value = _request({"id": "s1", "threadId": "t9"})

        await client.send(["a@x.com"], "Re: hi", "ok", thread_id="t9")

        assert msgs.send.call_args.kwargs["body"]["threadId"] == "t9"

    async def test_unencodable_header_names_operation(
        self, client: GmailClient, gmail_service: MagicMock
    ) -> None:
        msgs = _messages(gmail_service)

        with pytest.raises(GmailAPIError, match="Failed to send email"):
            await client.send(["a@x.com"], "Hi\nBcc: e@evil.com", "B")

        msgs.send.assert_not_called()

    def test_reply_headers_and_recipients(self) -> None:
        raw = build_raw_message(
            ["a@x.com", "b@x.com"], "Hi", "Body", cc=["c@x.com"], bcc=["d@x.com"], reply_to_message_id="<id@x>"
        )
        msg = message_from_bytes(base64.urlsafe_b64decode(raw))
        assert msg["To"] == "a@x.com, b@x.com"
        assert msg["Cc"] == "c@x.com"
        assert msg["Bcc"] == "d@x.com"
        assert msg["In-Reply-To"] == "<id@x>"
        assert msg["References"] == "<id@x>"


# ── labels / filters ───────────────────────────────────────────────────────────


class TestLabelsAndFilters:
    async def test_create_label_is_visible(self, client: GmailClient, gmail_service: MagicMock) -> None:
        labels = gmail_service.users.return_value.labels.return_value
        labels.create.return_value = _request({"id": "Label_9", "name": "Work/Shopify", "type": "user"})

        label = await client.create_label("Work/Shopify")

        assert label.id == "Label_9"
        body = labels.create.call_args.kwargs["body"]
        assert body["labelListVisibility"] == "labelShow"
        assert body["messageListVisibility"] == "show"

    async def test_create_filter_drops_empty_keys(self, client: GmailClient, gmail_service: MagicMock) -> None:
        filters = gmail_service.users.return_value.settings.return_value.filters.return_value
        filters.create.return_value = _request({"id": "f1", "criteria": {"from": "x@y.com"}})

        await client.create_filter(
            {"from": "x@y.com", "subject": None},
            {"addLabelIds": ["Label_1"], "removeLabelIds": [], "forward": None},
        )

        assert filters.create.call_args.kwargs["body"] == {
            "criteria": {"from": "x@y.com"},
            "action": {"addLabelIds": ["Label_1"]},
        }

    async def test_list_and_delete_filters(self, client: GmailClient, gmail_service: MagicMock) -> None:
        filters = gmail_service.users.return_value.settings.return_value.filters.return_value
        filters.list.return_value = _request({"filter": [{"id": "f1", "action": {"removeLabelIds": ["INBOX"]}}]})
        filters.delete.return_value = _request("")

        listed = await client.list_filters()
        deleted = await client.delete_filter("f1")

        assert listed[0].skips_inbox
        assert deleted == {"success": True, "filterId": "f1"}


# ── failures ───────────────────────────────────────────────────────────────────


class TestFailures:
    async def test_timeout_is_reported(self, gmail_service: MagicMock) -> None:
        client = GmailClient(gmail_service, timeout=0.01)
        _messages(gmail_service).get.return_value = _request({})

        async def _never(*_args: Any, **_kwargs: Any) -> None:
            await asyncio.sleep(1)

        with pytest.MonkeyPatch.context() as mp:
            mp.setattr(asyncio, "to_thread", _never)
            with pytest.raises(GmailTimeoutError, match="operation timed out"):
                await client.read("m1")

    async def test_unattached_client(self) -> None:
        client = GmailClient()
        with pytest.raises(GmailNotInitializedError):
            await client.list_labels()
