"""Per-session memory used to resolve natural-language references.

One ``SessionContext`` is created per process and passed explicitly to the
dispatcher and the chat loop.  Nothing here is persisted.
"""

import logging
from collections import deque
from dataclasses import dataclass

from gmail_assistant.gmail.types import USER_LABEL_ID_PREFIX, EmailSummary, Label
from gmail_assistant.session.references import (
    AllFromSearchRef,
    FirstRef,
    IndexRef,
    LastReadRef,
    LastRef,
    LiteralRef,
    ThisOrItRef,
    parse_reference,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_TURNS = 10
_SUMMARY_ID_LIMIT = 5


@dataclass(frozen=True)
class Turn:
    """One conversation message kept for the model's context window."""

    role: str  # "user" | "assistant"
    text: str


def is_label_id(label: str) -> bool:
    """True for tokens that are already label IDs and skip the name lookup.

    System label IDs are upper-case ("INBOX", "STARRED"); user label IDs start
    with ``Label_``.
    """
    return label == label.upper() or label.startswith(USER_LABEL_ID_PREFIX)


class SessionContext:
    """Recent search results, the last read message, the label cache and chat history.

    Usage::

        ctx = SessionContext()
        ctx.record_search(result.messages)
        ctx.resolve_message_id("first")     # → newest hit's ID
        ctx.resolve_message_id_list(["those"])
    """

    def __init__(self, history_turns: int = DEFAULT_HISTORY_TURNS) -> None:
        self.last_search: list[EmailSummary] = []
        self.last_read_id: str | None = None
        self.labels: list[Label] = []
        self._label_ids: dict[str, str] = {}  # lower-cased name → label ID
        self.history: deque[Turn] = deque(maxlen=2 * history_turns)

    # ── Recording ──────────────────────────────────────────────────────────────

    @property
    def last_search_ids(self) -> list[str]:
        return [m.id for m in self.last_search]

    def record_search(self, messages: list[EmailSummary]) -> None:
        """Remember the latest search hits, newest first.  An empty list clears them."""
        self.last_search = list(messages)

    def record_read(self, message_id: str) -> None:
        self.last_read_id = message_id

    def record_exchange(self, user_text: str, assistant_text: str) -> None:
        """Append a user/assistant pair; the oldest turns fall off when full."""
        self.history.append(Turn("user", user_text))
        self.history.append(Turn("assistant", assistant_text or "[Tool execution]"))

    # ── Message references ─────────────────────────────────────────────────────

    def resolve_message_id(self, token: str) -> str:
        """Resolve a single message token, returning the token itself when unresolvable.

        "first", "last" and "latest" all name the newest search hit, because
        Gmail already lists results newest first.
        """
        ref = parse_reference(token)
        ids = self.last_search_ids

        if isinstance(ref, (FirstRef, LastRef)):
            return ids[0] if ids else token
        if isinstance(ref, IndexRef):
            return ids[ref.position - 1] if ref.position <= len(ids) else token
        if isinstance(ref, LastReadRef):
            return self.last_read_id or token
        if isinstance(ref, ThisOrItRef):
            resolved = self._this_or_it()
            return resolved[0] if resolved else token
        return token

    def resolve_message_id_list(self, tokens: list[str]) -> list[str]:
        """Resolve a list of message tokens, expanding the list-level references.

        "those"/"all_from_search" expand to every ID of the last search (which
        may be empty); "it"/"this" expand to the last read message, else the
        first search hit, else nothing.  Other tokens resolve one-to-one.
        """
        resolved: list[str] = []
        for token in tokens:
            ref = parse_reference(token)
            if isinstance(ref, AllFromSearchRef):
                resolved.extend(self.last_search_ids)
            elif isinstance(ref, ThisOrItRef):
                resolved.extend(self._this_or_it())
            elif isinstance(ref, LiteralRef):
                resolved.append(token)
            else:
                resolved.append(self.resolve_message_id(token))
        return resolved

    def _this_or_it(self) -> list[str]:
        if self.last_read_id:
            return [self.last_read_id]
        if self.last_search:
            return [self.last_search[0].id]
        return []

    # ── Labels ─────────────────────────────────────────────────────────────────

    def refresh_labels(self, labels: list[Label]) -> None:
        """Replace the label cache with a fresh server listing."""
        self.labels = list(labels)
        self._label_ids = {lbl.name.lower(): lbl.id for lbl in self.labels}
        logger.debug("Label cache refreshed: %d labels", len(self.labels))

    def get_label_id(self, name: str) -> str | None:
        """Case-insensitive exact name lookup.  Returns None on a miss."""
        return self._label_ids.get(name.lower())

    @property
    def user_label_names(self) -> list[str]:
        return sorted(lbl.name for lbl in self.labels if lbl.type == "user")

    # ── Prompt context ─────────────────────────────────────────────────────────

    def summary(self) -> str:
        """Render the context block the model needs to resolve references."""
        lines: list[str] = []
        if self.last_read_id:
            lines.append(f"Last read email ID: {self.last_read_id}")

        ids = self.last_search_ids
        if ids:
            shown = ", ".join(ids[:_SUMMARY_ID_LIMIT])
            more = "..." if len(ids) > _SUMMARY_ID_LIMIT else ""
            lines.append(f"Recent search returned {len(ids)} emails with IDs: {shown}{more}")
            newest = self.last_search[0]
            lines.append(
                f'Most recent email from search: "{newest.subject}" '
                f"from {newest.sender} (ID: {newest.id})"
            )

        names = self.user_label_names
        if names:
            lines.append("Available labels: " + ", ".join(names))
            examples = ", ".join(f'label:"{n}"' for n in names[:3])
            lines.append(f"Search by label with: {examples}")

        if not lines:
            return "No emails searched or read yet in this session."
        return "\n".join(lines)
