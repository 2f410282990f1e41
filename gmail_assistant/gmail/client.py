"""Gmail client — wraps the Gmail REST API behind a typed async API."""

import asyncio
import base64
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from email.message import EmailMessage
from pathlib import Path
from typing import Any

from gmail_assistant.gmail.auth import build_gmail_service, get_gmail_credentials
from gmail_assistant.gmail.types import (
    INBOX,
    STARRED,
    UNREAD,
    Attachment,
    BatchOperation,
    BatchResult,
    EmailContent,
    EmailSummary,
    Filter,
    Label,
    ModifyResult,
    SearchResult,
    SentMessage,
)

logger = logging.getLogger(__name__)

_USER_ID = "me"
_METADATA_HEADERS = ["From", "To", "Subject", "Date"]

# Upper bound on messages a single batch operation will touch
BATCH_LIMIT = 100
DEFAULT_TIMEOUT_SECONDS = 30.0

_FILTER_CRITERIA_KEYS = ("from", "to", "subject", "query", "hasAttachment")
_FILTER_ACTION_KEYS = ("addLabelIds", "removeLabelIds", "forward")

# (labels to add, labels to remove) for the label-modify side of batch operations
_BATCH_LABEL_CHANGES: dict[BatchOperation, tuple[list[str], list[str]]] = {
    BatchOperation.ARCHIVE: ([], [INBOX]),
    BatchOperation.MARK_READ: ([], [UNREAD]),
    BatchOperation.MARK_UNREAD: ([UNREAD], []),
    BatchOperation.STAR: ([STARRED], []),
    BatchOperation.UNSTAR: ([], [STARRED]),
}


class GmailAPIError(Exception):
    """Raised when a Gmail API call fails.

    The message names the failed operation ("Failed to search emails: ...")
    and the original failure is chained as ``__cause__``.
    """

    def __init__(self, operation: str, cause: object) -> None:
        super().__init__(f"Failed to {operation}: {cause}")
        self.operation = operation


class GmailTimeoutError(GmailAPIError):
    """Raised when a Gmail API call does not finish within the configured timeout."""


class GmailNotInitializedError(RuntimeError):
    """Raised when the client is used without a Gmail service."""


class GmailClient:
    """Thin async wrapper around the Gmail v1 discovery service.

    The discovery client is synchronous, so every ``execute()`` runs in a
    worker thread bounded by ``timeout``.  Per-message fan-out (metadata
    fetches, label modifications, trash) is issued concurrently and
    recombined in request order.
    """

    def __init__(self, service: Any = None, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._service = service
        self._timeout = timeout

    @property
    def service(self) -> Any:
        if self._service is None:
            raise GmailNotInitializedError("Gmail client not initialized; authenticate first")
        return self._service

    # ── Public API ─────────────────────────────────────────────────────────────

    async def search(self, query: str, max_results: int = 10) -> SearchResult:
        """Return metadata for up to ``max_results`` messages matching ``query``.

        Makes one list call, then one metadata fetch per hit.  No matches is an
        empty result, not an error.
        """
        with self._failure("search emails"):
            listing = await self._execute(
                self._messages().list(userId=_USER_ID, q=query, maxResults=max_results)
            )
            refs = (listing.get("messages") or [])[:max_results]
            if not refs:
                return SearchResult(messages=[], query=query, total=0)

            details = await asyncio.gather(*(
                self._execute(self._messages().get(
                    userId=_USER_ID,
                    id=ref["id"],
                    format="metadata",
                    metadataHeaders=_METADATA_HEADERS,
                ))
                for ref in refs
            ))
            messages = [_parse_summary(ref, data) for ref, data in zip(refs, details)]
            total = int(listing.get("resultSizeEstimate", len(messages)))
            logger.debug("Search %r: %d message(s)", query, len(messages))
            return SearchResult(messages=messages, query=query, total=total)

    async def read(self, message_id: str) -> EmailContent:
        """Return a single email with its decoded plain-text body and attachments."""
        with self._failure("read email"):
            data = await self._execute(
                self._messages().get(userId=_USER_ID, id=message_id, format="full")
            )
            return _parse_content(data)

    async def modify_labels(
        self,
        message_ids: list[str],
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> ModifyResult:
        """Apply ``add``/``remove`` label IDs to each message, one call per message."""
        with self._failure("modify labels"):
            return await self._modify_many(message_ids, add or [], remove or [])

    async def send(
        self,
        to: list[str],
        subject: str,
        body: str,
        *,
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        thread_id: str | None = None,
        reply_to_message_id: str | None = None,
    ) -> SentMessage:
        """Send a plain-text email.  ``thread_id`` is passed through unmodified.

        ``reply_to_message_id`` is the RFC 2822 Message-ID of the email being
        answered, not a Gmail message ID.
        """
        with self._failure("send email"):
            raw = build_raw_message(
                to, subject, body, cc=cc, bcc=bcc, reply_to_message_id=reply_to_message_id
            )
            payload: dict[str, Any] = {"raw": raw}
            if thread_id:
                payload["threadId"] = thread_id

            data = await self._execute(self._messages().send(userId=_USER_ID, body=payload))
            logger.info("Sent email to %s: %r", ", ".join(to), subject)
            return SentMessage(
                id=str(data.get("id", "")),
                thread_id=str(data.get("threadId", "")),
                label_ids=list(data.get("labelIds", [])),
            )

    async def batch_operate(self, query: str, operation: BatchOperation | str) -> BatchResult:
        """Resolve ``query`` to at most ``BATCH_LIMIT`` messages and apply ``operation``.

        Raises:
            ValueError: if ``operation`` is not a known batch operation.
        """
        try:
            op = BatchOperation(operation)
        except ValueError:
            raise ValueError(f"Unknown batch operation: {operation!r}") from None

        with self._failure("perform batch operation"):
            listing = await self._execute(
                self._messages().list(userId=_USER_ID, q=query, maxResults=BATCH_LIMIT)
            )
            ids = [str(m["id"]) for m in (listing.get("messages") or [])][:BATCH_LIMIT]
            if not ids:
                return BatchResult(operation=op, query=query, message_ids=[])

            if op is BatchOperation.DELETE:
                await asyncio.gather(*(
                    self._execute(self._messages().trash(userId=_USER_ID, id=mid))
                    for mid in ids
                ))
            else:
                add, remove = _BATCH_LABEL_CHANGES[op]
                await self._modify_many(ids, add, remove)

            logger.info("Batch %s on %r: %d message(s)", op.value, query, len(ids))
            return BatchResult(operation=op, query=query, message_ids=ids)

    async def list_labels(self) -> list[Label]:
        with self._failure("list labels"):
            data = await self._execute(self._labels().list(userId=_USER_ID))
            return [Label.from_api(lbl) for lbl in data.get("labels") or []]

    async def create_label(self, name: str) -> Label:
        """Create a label visible in both the label list and the message list."""
        with self._failure("create label"):
            data = await self._execute(self._labels().create(
                userId=_USER_ID,
                body={
                    "name": name,
                    "labelListVisibility": "labelShow",
                    "messageListVisibility": "show",
                },
            ))
            label = Label.from_api(data)
            logger.info("Created Gmail label: %s (id=%s)", label.name, label.id)
            return label

    async def create_filter(self, criteria: dict[str, Any], action: dict[str, Any]) -> Filter:
        """Create a filter from the populated criteria and action keys only."""
        body = {
            "criteria": {
                k: criteria[k] for k in _FILTER_CRITERIA_KEYS if criteria.get(k) is not None
            },
            "action": {k: action[k] for k in _FILTER_ACTION_KEYS if action.get(k)},
        }
        with self._failure("create filter"):
            data = await self._execute(self._filters().create(userId=_USER_ID, body=body))
            created = Filter.from_api(data)
            logger.info("Created Gmail filter %s", created.id)
            return created

    async def list_filters(self) -> list[Filter]:
        with self._failure("list filters"):
            data = await self._execute(self._filters().list(userId=_USER_ID))
            return [Filter.from_api(f) for f in data.get("filter") or []]

    async def delete_filter(self, filter_id: str) -> dict[str, Any]:
        with self._failure("delete filter"):
            await self._execute(self._filters().delete(userId=_USER_ID, id=filter_id))
            logger.info("Deleted Gmail filter %s", filter_id)
            return {"success": True, "filterId": filter_id}

    async def get_profile(self) -> str:
        """Return the authenticated account's address."""
        with self._failure("get profile"):
            data = await self._execute(self.service.users().getProfile(userId=_USER_ID))
            return str(data.get("emailAddress", ""))

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _messages(self) -> Any:
        return self.service.users().messages()

    def _labels(self) -> Any:
        return self.service.users().labels()

    def _filters(self) -> Any:
        return self.service.users().settings().filters()

    async def _modify_many(
        self, message_ids: list[str], add: list[str], remove: list[str]
    ) -> ModifyResult:
        responses = await asyncio.gather(*(
            self._execute(self._messages().modify(
                userId=_USER_ID,
                id=mid,
                body={"addLabelIds": add, "removeLabelIds": remove},
            ))
            for mid in message_ids
        ))
        return ModifyResult(
            message_ids=list(message_ids),
            labels_after={
                mid: list((resp or {}).get("labelIds", []))
                for mid, resp in zip(message_ids, responses)
            },
        )

    async def _execute(self, request: Any) -> dict[str, Any]:
        """Run a prepared discovery request off the event loop, bounded by the timeout."""
        logger.debug("Gmail → %s", getattr(request, "methodId", request))
        result = await asyncio.wait_for(asyncio.to_thread(request.execute), self._timeout)
        return result or {}

    @contextmanager
    def _failure(self, operation: str) -> Iterator[None]:
        """Wrap any failure inside the block into a GmailAPIError naming ``operation``."""
        try:
            yield
        except (GmailAPIError, GmailNotInitializedError):
            raise
        except asyncio.TimeoutError as exc:
            logger.error("Gmail call timed out: %s", operation)
            raise GmailTimeoutError(
                operation, f"operation timed out after {self._timeout:g}s"
            ) from exc
        except Exception as exc:
            logger.error("Gmail call failed: %s: %s", operation, exc)
            raise GmailAPIError(operation, exc) from exc


# ── Response parsing ───────────────────────────────────────────────────────────


def _header(headers: list[dict[str, Any]], name: str) -> str:
    wanted = name.lower()
    for h in headers:
        if str(h.get("name", "")).lower() == wanted:
            return str(h.get("value", ""))
    return ""


def _decode(data: str) -> str:
    """Decode Gmail's unpadded base64url body data."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def _parse_summary(ref: dict[str, Any], data: dict[str, Any]) -> EmailSummary:
    headers = (data.get("payload") or {}).get("headers") or []
    return EmailSummary(
        id=str(ref.get("id") or data.get("id", "")),
        thread_id=str(ref.get("threadId") or data.get("threadId", "")),
        subject=_header(headers, "Subject"),
        sender=_header(headers, "From"),
        recipient=_header(headers, "To"),
        date=_header(headers, "Date"),
        snippet=str(data.get("snippet", "")),
        label_ids=list(data.get("labelIds") or []),
    )


def find_plain_text(parts: list[dict[str, Any]]) -> str | None:
    """Depth-first search for the first text/plain leaf with body data."""
    for part in parts:
        if part.get("mimeType") == "text/plain" and (part.get("body") or {}).get("data"):
            return _decode(part["body"]["data"])
        nested = part.get("parts")
        if nested:
            found = find_plain_text(nested)
            if found is not None:
                return found
    return None


def collect_attachments(parts: list[dict[str, Any]]) -> list[Attachment]:
    """Return metadata for every part (at any depth) with a filename and attachment ID."""
    found: list[Attachment] = []
    for part in parts:
        body = part.get("body") or {}
        if part.get("filename") and body.get("attachmentId"):
            found.append(Attachment(
                filename=str(part["filename"]),
                mime_type=str(part.get("mimeType", "")),
                size=int(body.get("size", 0)),
                attachment_id=str(body["attachmentId"]),
            ))
        if part.get("parts"):
            found.extend(collect_attachments(part["parts"]))
    return found


def _parse_content(data: dict[str, Any]) -> EmailContent:
    payload = data.get("payload") or {}
    headers = payload.get("headers") or []
    parts = payload.get("parts") or []
    snippet = str(data.get("snippet", ""))

    body = find_plain_text(parts) if parts else None
    if body is None and (payload.get("body") or {}).get("data"):
        body = _decode(payload["body"]["data"])

    return EmailContent(
        id=str(data.get("id", "")),
        thread_id=str(data.get("threadId", "")),
        subject=_header(headers, "Subject"),
        sender=_header(headers, "From"),
        recipient=_header(headers, "To"),
        cc=_header(headers, "Cc"),
        date=_header(headers, "Date"),
        rfc_message_id=_header(headers, "Message-ID"),
        body=body or snippet,
        snippet=snippet,
        label_ids=list(data.get("labelIds") or []),
        attachments=collect_attachments(parts),
    )


def build_raw_message(
    to: list[str],
    subject: str,
    body: str,
    *,
    cc: list[str] | None = None,
    bcc: list[str] | None = None,
    reply_to_message_id: str | None = None,
) -> str:
    """Build a UTF-8 plain-text RFC 2822 message and return it base64url-encoded."""
    message = EmailMessage()
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    if cc:
        message["Cc"] = ", ".join(cc)
    if bcc:
        message["Bcc"] = ", ".join(bcc)
    if reply_to_message_id:
        message["In-Reply-To"] = reply_to_message_id
        message["References"] = reply_to_message_id
    message.set_content(body, charset="utf-8")
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


def create_gmail_client(
    token_path: str | Path,
    credentials_path: str | Path,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    interactive: bool = False,
) -> GmailClient:
    """Load credentials and return a ready-to-use GmailClient.

    Blocking: may open a browser for consent when ``interactive`` is true.

    Example::

        client = create_gmail_client("token.json", "credentials.json")
        result = await client.search("is:unread")
    """
    creds = get_gmail_credentials(token_path, credentials_path, interactive=interactive)
    return GmailClient(build_gmail_service(creds), timeout=timeout)
