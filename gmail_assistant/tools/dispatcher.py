"""Tool dispatcher shared by the chat loop and the MCP server.

Every call runs the same pipeline:

    validate → resolve context → confirm if dangerous → execute → normalize

and always comes back as a ``ToolResult``.  Runtime failures (bad arguments,
missing messages, Gmail errors) are reported inside the result; callers check
``result.ok`` rather than catching exceptions.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from googleapiclient.errors import HttpError
from pydantic import ValidationError

from gmail_assistant.gmail.client import GmailAPIError, GmailClient, GmailNotInitializedError
from gmail_assistant.safety.confirmation import (
    CREATE_FILTER,
    ConfirmationGate,
    batch_confirmation,
    cancelled,
    filter_confirmation,
)
from gmail_assistant.session.context import SessionContext, is_label_id
from gmail_assistant.tools.schemas import (
    ARGUMENT_MODELS,
    BatchOperationArgs,
    CreateFilterArgs,
    CreateLabelArgs,
    DeleteFilterArgs,
    ModifyLabelsArgs,
    ReadEmailArgs,
    SearchEmailsArgs,
    SendEmailArgs,
    invalid_fields,
)

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    INVALID_ARGUMENTS = "invalid_arguments"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"
    UNKNOWN_TOOL = "unknown_tool"


@dataclass(frozen=True)
class ToolError:
    kind: ErrorKind
    message: str
    details: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "kind": self.kind.value}
        if self.details:
            payload["details"] = list(self.details)
        return payload


@dataclass
class ToolResult:
    """Outcome of one dispatched call: exactly one of ``payload`` or ``error`` is set.

    A declined confirmation is a successful result whose payload carries
    ``cancelled: True``.
    """

    tool: str
    payload: dict[str, Any] | None = None
    error: ToolError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return bool(self.payload and self.payload.get("cancelled") is True)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready form handed back to the model or an MCP client."""
        body = self.error.to_payload() if self.error else dict(self.payload or {})
        if self.warnings:
            body["warnings"] = list(self.warnings)
        return body


class _ToolFailure(Exception):
    """Internal: aborts a handler with a typed error."""

    def __init__(self, error: ToolError) -> None:
        super().__init__(error.message)
        self.error = error


_Handler = Callable[[Any, list[str]], Awaitable[dict[str, Any]]]


class ToolDispatcher:
    """Runs tool calls from the chat loop or the MCP server against one Gmail account.

    Usage::

        dispatcher = ToolDispatcher(gmail, SessionContext(), ConfirmationGate(confirmer))
        result = await dispatcher.dispatch("search_emails", {"query": "is:unread"})
        if result.ok:
            print(result.payload["total"])
    """

    def __init__(self, gmail: GmailClient, context: SessionContext, gate: ConfirmationGate) -> None:
        self._gmail = gmail
        self._context = context
        self._gate = gate
        self._handlers: dict[str, _Handler] = {
            "search_emails": self._search_emails,
            "read_email": self._read_email,
            "send_email": self._send_email,
            "modify_labels": self._modify_labels,
            "batch_operation": self._batch_operation,
            "list_labels": self._list_labels,
            "create_label": self._create_label,
            "create_filter": self._create_filter,
            "list_filters": self._list_filters,
            "delete_filter": self._delete_filter,
        }

    @property
    def context(self) -> SessionContext:
        return self._context

    async def dispatch(self, name: str, raw_args: dict[str, Any] | None) -> ToolResult:
        handler = self._handlers.get(name)
        if handler is None:
            logger.error("Unknown tool requested: %s", name)
            return ToolResult(name, error=ToolError(ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}"))

        try:
            args = ARGUMENT_MODELS[name].model_validate(raw_args or {})
        except ValidationError as exc:
            fields = invalid_fields(exc)
            logger.info("Rejected %s arguments: %s", name, fields)
            return ToolResult(name, error=ToolError(
                ErrorKind.INVALID_ARGUMENTS,
                f"Invalid arguments for {name}: {', '.join(fields)}",
                details=fields,
            ))

        warnings: list[str] = []
        try:
            payload = await handler(args, warnings)
        except _ToolFailure as exc:
            return ToolResult(name, error=exc.error, warnings=warnings)
        except GmailAPIError as exc:
            kind = ErrorKind.NOT_FOUND if _is_not_found(exc) else ErrorKind.UPSTREAM
            return ToolResult(name, error=ToolError(kind, str(exc)), warnings=warnings)
        except GmailNotInitializedError as exc:
            return ToolResult(name, error=ToolError(ErrorKind.UPSTREAM, str(exc)), warnings=warnings)

        logger.debug("Tool %s succeeded", name)
        return ToolResult(name, payload=payload, warnings=warnings)

    # ── Handlers ───────────────────────────────────────────────────────────────

    async def _search_emails(self, args: SearchEmailsArgs, warnings: list[str]) -> dict[str, Any]:
        result = await self._gmail.search(args.query, args.max_results)
        self._context.record_search(result.messages)
        return result.to_payload()

    async def _read_email(self, args: ReadEmailArgs, warnings: list[str]) -> dict[str, Any]:
        message_id = self._context.resolve_message_id(args.message_id)
        content = await self._gmail.read(message_id)
        self._context.record_read(content.id or message_id)
        return content.to_payload()

    async def _send_email(self, args: SendEmailArgs, warnings: list[str]) -> dict[str, Any]:
        sent = await self._gmail.send(
            [str(a) for a in args.to],
            args.subject,
            args.body,
            cc=[str(a) for a in args.cc],
            bcc=[str(a) for a in args.bcc],
            thread_id=args.thread_id,
            reply_to_message_id=args.in_reply_to,
        )
        return sent.to_payload()

    async def _modify_labels(self, args: ModifyLabelsArgs, warnings: list[str]) -> dict[str, Any]:
        message_ids = self._context.resolve_message_id_list(args.message_ids)
        if not message_ids:
            raise _ToolFailure(ToolError(
                ErrorKind.NOT_FOUND,
                "No messages to modify: search or read an email first",
                details=["messageIds"],
            ))

        add = await self._resolve_labels(args.add_labels, warnings)
        remove = await self._resolve_labels(args.remove_labels, warnings)
        if not add and not remove:
            raise _ToolFailure(ToolError(
                ErrorKind.NOT_FOUND, "None of the requested labels exist", details=["addLabels", "removeLabels"]
            ))

        result = await self._gmail.modify_labels(message_ids, add, remove)
        return result.to_payload()

    async def _batch_operation(self, args: BatchOperationArgs, warnings: list[str]) -> dict[str, Any]:
        request = batch_confirmation(args.operation, args.query)
        if request is not None and not await self._gate.confirm(request):
            return cancelled(args.operation.value)
        result = await self._gmail.batch_operate(args.query, args.operation)
        return result.to_payload()

    async def _list_labels(self, args: Any, warnings: list[str]) -> dict[str, Any]:
        labels = await self._gmail.list_labels()
        self._context.refresh_labels(labels)
        return {"labels": [lbl.to_payload() for lbl in labels]}

    async def _create_label(self, args: CreateLabelArgs, warnings: list[str]) -> dict[str, Any]:
        label = await self._gmail.create_label(args.name)
        try:
            await self._refresh_labels()
        except GmailAPIError as exc:
            logger.warning("Label cache refresh after create failed: %s", exc)
            self._context.refresh_labels([*self._context.labels, label])
        return label.to_payload()

    async def _create_filter(self, args: CreateFilterArgs, warnings: list[str]) -> dict[str, Any]:
        add = await self._resolve_labels(args.action.add_label_ids, warnings)
        remove = await self._resolve_labels(args.action.remove_label_ids, warnings)
        forward = str(args.action.forward) if args.action.forward else None
        if not (add or remove or forward):
            raise _ToolFailure(ToolError(
                ErrorKind.NOT_FOUND,
                "None of the filter's labels exist",
                details=["action.addLabelIds", "action.removeLabelIds"],
            ))

        # Raw names and resolved IDs are both checked for INBOX
        request = filter_confirmation([*args.action.remove_label_ids, *remove])
        if request is not None and not await self._gate.confirm(request):
            return cancelled(CREATE_FILTER)

        created = await self._gmail.create_filter(
            args.criteria.to_api(),
            {"addLabelIds": add, "removeLabelIds": remove, "forward": forward},
        )
        return created.to_payload()

    async def _list_filters(self, args: Any, warnings: list[str]) -> dict[str, Any]:
        filters = await self._gmail.list_filters()
        return {"filters": [f.to_payload() for f in filters]}

    async def _delete_filter(self, args: DeleteFilterArgs, warnings: list[str]) -> dict[str, Any]:
        return await self._gmail.delete_filter(args.filter_id)

    # ── Label resolution ───────────────────────────────────────────────────────

    async def _refresh_labels(self) -> None:
        self._context.refresh_labels(await self._gmail.list_labels())

    async def _resolve_labels(self, labels: list[str], warnings: list[str]) -> list[str]:
        """Map label names to IDs, refreshing the cache once on the first miss.

        Names still unknown after the refresh are skipped with a warning.
        """
        resolved: list[str] = []
        refreshed = False
        for label in labels:
            if is_label_id(label):
                resolved.append(label)
                continue
            label_id = self._context.get_label_id(label)
            if label_id is None and not refreshed:
                await self._refresh_labels()
                refreshed = True
                label_id = self._context.get_label_id(label)
            if label_id is None:
                logger.warning("Label not found, skipping: %s", label)
                warnings.append(f'Label "{label}" not found; skipped')
                continue
            resolved.append(label_id)
        return resolved


def _is_not_found(exc: GmailAPIError) -> bool:
    cause = exc.__cause__
    return isinstance(cause, HttpError) and getattr(cause.resp, "status", None) == 404
