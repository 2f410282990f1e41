"""Tool definitions and strict argument models for the Gmail tool surface.

``TOOL_DEFINITIONS`` is what the model (and MCP clients) see; the pydantic
models in ``ARGUMENT_MODELS`` are what the dispatcher validates against
before anything touches Gmail.
"""

from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    ValidationError,
    model_validator,
)

from gmail_assistant.gmail.types import BatchOperation


class _ToolArgs(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _as_list(value: Any) -> Any:
    """Accept a bare string where a list of strings is expected."""
    if isinstance(value, str):
        return [value]
    return value


def _single_line(value: str) -> str:
    if "\r" in value or "\n" in value:
        raise ValueError("must not contain line breaks")
    return value


StringList = Annotated[list[str], BeforeValidator(_as_list)]
EmailList = Annotated[list[EmailStr], BeforeValidator(_as_list)]
NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
HeaderText = Annotated[str, AfterValidator(_single_line)]


# ── Argument models ────────────────────────────────────────────────────────────


class SearchEmailsArgs(_ToolArgs):
    query: NonBlank
    max_results: int = Field(10, ge=1, le=100, alias="maxResults")


class ReadEmailArgs(_ToolArgs):
    message_id: NonBlank = Field(..., alias="messageId")


class SendEmailArgs(_ToolArgs):
    to: EmailList = Field(..., min_length=1)
    subject: HeaderText
    body: str
    cc: EmailList = Field(default_factory=list)
    bcc: EmailList = Field(default_factory=list)
    thread_id: str | None = Field(None, alias="threadId")
    in_reply_to: HeaderText | None = Field(None, alias="inReplyTo")


class ModifyLabelsArgs(_ToolArgs):
    message_ids: StringList = Field(..., min_length=1, alias="messageIds")
    add_labels: StringList = Field(default_factory=list, alias="addLabels")
    remove_labels: StringList = Field(default_factory=list, alias="removeLabels")

    @model_validator(mode="after")
    def _require_change(self) -> "ModifyLabelsArgs":
        if not self.add_labels and not self.remove_labels:
            raise ValueError("at least one of addLabels, removeLabels is required")
        return self


class BatchOperationArgs(_ToolArgs):
    query: NonBlank
    operation: BatchOperation


class ListLabelsArgs(_ToolArgs):
    pass


class CreateLabelArgs(_ToolArgs):
    name: NonBlank


class FilterCriteria(_ToolArgs):
    sender: str | None = Field(None, alias="from")
    to: str | None = None
    subject: str | None = None
    query: str | None = None
    has_attachment: bool | None = Field(None, alias="hasAttachment")

    @model_validator(mode="after")
    def _require_predicate(self) -> "FilterCriteria":
        if all(
            v is None for v in (self.sender, self.to, self.subject, self.query, self.has_attachment)
        ):
            raise ValueError("criteria needs at least one of from, to, subject, query, hasAttachment")
        return self

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FilterAction(_ToolArgs):
    # Name-based aliases are accepted so every spelling reaches the same fields
    add_label_ids: StringList = Field(
        default_factory=list, validation_alias=AliasChoices("addLabelIds", "addLabels")
    )
    remove_label_ids: StringList = Field(
        default_factory=list, validation_alias=AliasChoices("removeLabelIds", "removeLabels")
    )
    forward: EmailStr | None = None

    @model_validator(mode="after")
    def _require_effect(self) -> "FilterAction":
        if not (self.add_label_ids or self.remove_label_ids or self.forward):
            raise ValueError("action needs at least one of addLabelIds, removeLabelIds, forward")
        return self


class CreateFilterArgs(_ToolArgs):
    criteria: FilterCriteria
    action: FilterAction


class ListFiltersArgs(_ToolArgs):
    pass


class DeleteFilterArgs(_ToolArgs):
    filter_id: NonBlank = Field(..., alias="filterId")


ARGUMENT_MODELS: dict[str, type[_ToolArgs]] = {
    "search_emails": SearchEmailsArgs,
    "read_email": ReadEmailArgs,
    "send_email": SendEmailArgs,
    "modify_labels": ModifyLabelsArgs,
    "batch_operation": BatchOperationArgs,
    "list_labels": ListLabelsArgs,
    "create_label": CreateLabelArgs,
    "create_filter": CreateFilterArgs,
    "list_filters": ListFiltersArgs,
    "delete_filter": DeleteFilterArgs,
}


def invalid_fields(exc: ValidationError) -> list[str]:
    """Dotted paths of every offending field, in error order, without duplicates."""
    fields: list[str] = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"]) or "(arguments)"
        if path not in fields:
            fields.append(path)
    return fields


# ── Tool definitions ───────────────────────────────────────────────────────────

_STRING_LIST: dict[str, Any] = {"type": "array", "items": {"type": "string"}}

#: Tool schemas in Anthropic's ``input_schema`` shape; the MCP server reuses them.
TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "search_emails",
        "description": "Search for emails using Gmail query syntax. Results are newest first.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": (
                        'Gmail search query, e.g. "is:unread", "from:someone@example.com", '
                        '"subject:meeting", "has:attachment", "newer_than:2d"'
                    ),
                },
                "maxResults": {
                    "type": "integer",
                    "description": "Maximum number of results (1-100)",
                    "default": 10,
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "read_email",
        "description": "Read the full content of one email.",
        "input_schema": {
            "type": "object",
            "properties": {
                "messageId": {
                    "type": "string",
                    "description": (
                        'A message ID from search results, or a reference: "first", "latest", '
                        '"1", "2", ... (position in the last search), "last_read", "it"'
                    ),
                },
            },
            "required": ["messageId"],
        },
    },
    {
        "name": "send_email",
        "description": "Send a new email, or a reply when threadId is given.",
        "input_schema": {
            "type": "object",
            "properties": {
                "to": {**_STRING_LIST, "description": "Recipient email addresses"},
                "subject": {"type": "string", "description": "Subject line"},
                "body": {"type": "string", "description": "Plain-text body"},
                "cc": {**_STRING_LIST, "description": "CC recipients"},
                "bcc": {**_STRING_LIST, "description": "BCC recipients"},
                "threadId": {"type": "string", "description": "Thread to reply in"},
                "inReplyTo": {
                    "type": "string",
                    "description": "rfcMessageId of the email being replied to (from read_email)",
                },
            },
            "required": ["to", "subject", "body"],
        },
    },
    {
        "name": "modify_labels",
        "description": "Add or remove labels on specific emails. Labels may be names or IDs.",
        "input_schema": {
            "type": "object",
            "properties": {
                "messageIds": {
                    **_STRING_LIST,
                    "description": (
                        'Message IDs, or ["those"] for every email from the last search, '
                        '["it"] for the email just read'
                    ),
                },
                "addLabels": {
                    **_STRING_LIST,
                    "description": 'Labels to add, e.g. "STARRED", "IMPORTANT", or a label name',
                },
                "removeLabels": {
                    **_STRING_LIST,
                    "description": 'Labels to remove: "UNREAD" marks read, "INBOX" archives',
                },
            },
            "required": ["messageIds"],
        },
    },
    {
        "name": "batch_operation",
        "description": "Apply one operation to every email (max 100) matching a query.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Gmail search query"},
                "operation": {
                    "type": "string",
                    "enum": [op.value for op in BatchOperation],
                    "description": "Operation to perform on matching emails",
                },
            },
            "required": ["query", "operation"],
        },
    },
    {
        "name": "list_labels",
        "description": "List all labels in the account.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "create_label",
        "description": "Create a new label. Only when explicitly asked to create one.",
        "input_schema": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": 'Label name; use "/" for nesting, e.g. "Work/Shopify"',
                },
            },
            "required": ["name"],
        },
    },
    {
        "name": "create_filter",
        "description": "Create a filter that processes incoming emails automatically.",
        "input_schema": {
            "type": "object",
            "properties": {
                "criteria": {
                    "type": "object",
                    "properties": {
                        "from": {
                            "type": "string",
                            "description": 'Sender address or domain, e.g. "*@email.shopify.com"',
                        },
                        "to": {"type": "string"},
                        "subject": {"type": "string"},
                        "query": {"type": "string", "description": "Gmail search query"},
                        "hasAttachment": {"type": "boolean"},
                    },
                },
                "action": {
                    "type": "object",
                    "properties": {
                        "addLabelIds": {
                            **_STRING_LIST,
                            "description": "Labels (names or IDs) to apply",
                        },
                        "removeLabelIds": {
                            **_STRING_LIST,
                            "description": "Labels to remove; INBOX means skip the inbox",
                        },
                        "forward": {"type": "string", "description": "Forward to this address"},
                    },
                },
            },
            "required": ["criteria", "action"],
        },
    },
    {
        "name": "list_filters",
        "description": "List all existing filters.",
        "input_schema": {"type": "object", "properties": {}},
    },
    {
        "name": "delete_filter",
        "description": "Delete a filter by its ID.",
        "input_schema": {
            "type": "object",
            "properties": {"filterId": {"type": "string"}},
            "required": ["filterId"],
        },
    },
]
