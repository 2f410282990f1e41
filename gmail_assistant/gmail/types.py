"""Data types shared across the Gmail wrapper, dispatcher, and display modules."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

# Gmail system label IDs used directly without cache lookup
INBOX = "INBOX"
UNREAD = "UNREAD"
STARRED = "STARRED"

#: Prefix Gmail uses for user-label IDs ("Label_123456").
USER_LABEL_ID_PREFIX = "Label_"


class BatchOperation(str, Enum):
    """Operations accepted by ``batch_operation``.

    Values match the wire names used in the tool schema so they round-trip
    through JSON without a mapping step.
    """

    ARCHIVE = "archive"
    DELETE = "delete"
    MARK_READ = "markRead"
    MARK_UNREAD = "markUnread"
    STAR = "star"
    UNSTAR = "unstar"


@dataclass(frozen=True)
class EmailSummary:
    """A search hit: metadata headers plus snippet and label IDs.

    Populated from a ``format=metadata`` fetch, so there is no body.
    """

    id: str
    thread_id: str
    subject: str = ""
    sender: str = ""
    recipient: str = ""
    date: str = ""
    snippet: str = ""
    label_ids: list[str] = field(default_factory=list)

    @property
    def is_unread(self) -> bool:
        return UNREAD in self.label_ids

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "subject": self.subject,
            "from": self.sender,
            "to": self.recipient,
            "date": self.date,
            "snippet": self.snippet,
            "labelIds": list(self.label_ids),
        }


@dataclass(frozen=True)
class SearchResult:
    """Ordered search hits (newest first, as Gmail lists them)."""

    messages: list[EmailSummary]
    query: str
    total: int = 0

    @property
    def ids(self) -> list[str]:
        return [m.id for m in self.messages]

    def to_payload(self) -> dict[str, Any]:
        return {
            "messages": [m.to_payload() for m in self.messages],
            "query": self.query,
            "total": self.total,
        }


@dataclass(frozen=True)
class Attachment:
    """Attachment metadata from a MIME part carrying a filename and attachment ID."""

    filename: str
    mime_type: str
    size: int
    attachment_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "mimeType": self.mime_type,
            "size": self.size,
            "attachmentId": self.attachment_id,
        }


@dataclass(frozen=True)
class EmailContent:
    """A fully fetched email with decoded plain-text body.

    ``body`` falls back to the snippet when the message has no text/plain part.
    """

    id: str
    thread_id: str
    subject: str
    sender: str
    recipient: str
    date: str
    body: str
    snippet: str = ""
    cc: str = ""
    rfc_message_id: str = ""
    label_ids: list[str] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "subject": self.subject,
            "from": self.sender,
            "to": self.recipient,
            "cc": self.cc,
            "date": self.date,
            "body": self.body,
            "snippet": self.snippet,
            "rfcMessageId": self.rfc_message_id,
            "labelIds": list(self.label_ids),
            "attachments": [a.to_payload() for a in self.attachments],
        }


@dataclass(frozen=True)
class Label:
    """A Gmail label. ``type`` is "system" or "user"."""

    id: str
    name: str
    type: str = "user"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Label":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=str(data.get("type", "user")).lower(),
        )

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Filter:
    """A server-side filter. Immutable once created; change by delete + recreate."""

    id: str
    criteria: dict[str, Any] = field(default_factory=dict)
    action: dict[str, Any] = field(default_factory=dict)

    @property
    def skips_inbox(self) -> bool:
        return INBOX in self.action.get("removeLabelIds", [])

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Filter":
        return cls(
            id=str(data.get("id", "")),
            criteria=dict(data.get("criteria", {})),
            action=dict(data.get("action", {})),
        )

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "criteria": dict(self.criteria), "action": dict(self.action)}


@dataclass(frozen=True)
class ModifyResult:
    """Outcome of a per-message label modification."""

    message_ids: list[str]
    labels_after: dict[str, list[str]] = field(default_factory=dict)

    @property
    def modified(self) -> int:
        return len(self.message_ids)

    def to_payload(self) -> dict[str, Any]:
        return {
            "results": [
                {"messageId": mid, "success": True, "labels": self.labels_after.get(mid, [])}
                for mid in self.message_ids
            ],
            "modified": self.modified,
        }


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a query-driven batch operation."""

    operation: BatchOperation
    query: str
    message_ids: list[str] = field(default_factory=list)

    @property
    def affected(self) -> int:
        return len(self.message_ids)

    def to_payload(self) -> dict[str, Any]:
        return {
            "operation": self.operation.value,
            "query": self.query,
            "affected": self.affected,
            "messageIds": list(self.message_ids),
        }


@dataclass(frozen=True)
class SentMessage:
    id: str
    thread_id: str
    label_ids: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "labelIds": list(self.label_ids),
            "success": True,
        }
