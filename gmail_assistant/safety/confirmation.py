"""Confirmation gate for destructive operations.

The trigger set is fixed here and cannot be widened or narrowed by tool
arguments: batch delete, batch archive, and any filter whose action removes
the INBOX label.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from gmail_assistant.gmail.types import INBOX, BatchOperation

logger = logging.getLogger(__name__)

CREATE_FILTER = "create_filter"


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the user is being asked to approve."""

    operation: str
    action: str
    details: str


#: Async callback that shows a request to the user and returns their answer.
Confirmer = Callable[[ConfirmationRequest], Awaitable[bool]]


class GateState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


def fixed_answer(answer: bool) -> Confirmer:
    """Build a confirmer that always gives the same answer (non-interactive callers)."""

    async def _confirm(request: ConfirmationRequest) -> bool:
        logger.info(
            "Non-interactive confirmation for %s: %s", request.operation, "proceed" if answer else "cancel"
        )
        return answer

    return _confirm


def batch_confirmation(operation: BatchOperation, query: str) -> ConfirmationRequest | None:
    """Return the request needed before running ``operation``, or None if it is safe."""
    if operation is BatchOperation.DELETE:
        return ConfirmationRequest(
            operation=operation.value,
            action="Batch delete emails",
            details=f'This will move emails matching "{query}" to trash',
        )
    if operation is BatchOperation.ARCHIVE:
        return ConfirmationRequest(
            operation=operation.value,
            action="Batch archive emails",
            details=f'This will remove emails matching "{query}" from inbox',
        )
    return None


def filter_confirmation(remove_labels: Iterable[str]) -> ConfirmationRequest | None:
    """Return a request when a filter would make matching mail skip the inbox.

    ``remove_labels`` should hold every spelling seen for the action, both the
    raw names and the resolved IDs; matching is case-insensitive.
    """
    if any(label.strip().upper() == INBOX for label in remove_labels):
        return ConfirmationRequest(
            operation=CREATE_FILTER,
            action="Create filter that archives emails",
            details="Emails matching this filter will skip the inbox (be archived automatically)",
        )
    return None


def cancelled(operation: str) -> dict[str, Any]:
    """Payload for a declined confirmation.  A successful no-op, not an error."""
    return {"cancelled": True, "operation": operation}


class ConfirmationGate:
    """Idle → AwaitingConfirmation → Proceed | Cancel, one request at a time."""

    def __init__(self, confirmer: Confirmer) -> None:
        self._confirmer = confirmer
        self.state = GateState.IDLE

    async def confirm(self, request: ConfirmationRequest) -> bool:
        """Ask for confirmation.  Any failure while asking counts as a decline."""
        self.state = GateState.AWAITING_CONFIRMATION
        try:
            approved = bool(await self._confirmer(request))
        except (EOFError, KeyboardInterrupt):
            approved = False
        finally:
            self.state = GateState.IDLE
        logger.info("Confirmation for %s: %s", request.operation, "proceed" if approved else "cancel")
        return approved
