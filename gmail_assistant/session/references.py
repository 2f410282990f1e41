"""Symbolic message references ("first", "it", "3", ...) parsed into typed variants.

The model refers to emails from earlier turns with a small vocabulary of
tokens.  ``parse_reference`` maps each token onto one closed variant so the
resolution rules live in a single place (``SessionContext``).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LiteralRef:
    """A server-issued message ID, or any token with no symbolic meaning."""

    id: str


@dataclass(frozen=True)
class FirstRef:
    """``first``: the first hit of the last search."""


@dataclass(frozen=True)
class LastRef:
    """``last`` / ``latest``: the newest hit of the last search.

    Gmail lists newest first, so this is the same message as ``FirstRef``.
    """


@dataclass(frozen=True)
class IndexRef:
    """A 1-based position in the last search result."""

    position: int


@dataclass(frozen=True)
class LastReadRef:
    """``last_read``: the last message opened with read_email."""


@dataclass(frozen=True)
class AllFromSearchRef:
    """``those`` / ``all_from_search``: every hit of the last search."""


@dataclass(frozen=True)
class ThisOrItRef:
    """``it`` / ``this``: the last read message, else the first search hit."""


MessageRef = (
    LiteralRef | FirstRef | LastRef | IndexRef | LastReadRef | AllFromSearchRef | ThisOrItRef
)

_KEYWORDS: dict[str, MessageRef] = {
    "first": FirstRef(),
    "last": LastRef(),
    "latest": LastRef(),
    "last_read": LastReadRef(),
    "those": AllFromSearchRef(),
    "all_from_search": AllFromSearchRef(),
    "it": ThisOrItRef(),
    "this": ThisOrItRef(),
}


def parse_reference(token: str) -> MessageRef:
    """Parse a message token.  Matching is case-insensitive and ignores surrounding space.

    Positive ASCII integer strings become ``IndexRef``; zero, negatives and every
    unrecognised token stay literal IDs.
    """
    key = token.strip().lower()
    if key in _KEYWORDS:
        return _KEYWORDS[key]
    if key.isdecimal() and key.isascii() and int(key) > 0:
        return IndexRef(int(key))
    return LiteralRef(token)
