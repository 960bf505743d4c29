"""Message snapshots and enumerations shared by the compose engine.

What:
  Model the read-only view of a stored message that the engine consults when
  composing replies, forwards, edits and resends, together with the compose
  type and message flag enumerations.

Why:
  The resolvers are pure functions over message context. Keeping a small,
  storage-agnostic snapshot decouples them from the IMAP backend and from the
  editor surface, and lets tests build messages inline.

How:
  :class:`Message` is a dataclass whose header keys are lower-cased on
  construction so lookups are case-insensitive. Message identifiers are stored
  without angle brackets.

Interfaces:
  :class:`ComposeType`, :class:`Flag`, :class:`Message`, :func:`strip_brackets`.

Invariants & Safety:
  - ``Message`` is never mutated by the engine; flag changes are requested from
    the message store instead.
  - ``headers`` keys are always lower-case.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Set


class ComposeType(str, Enum):
    """Kind of draft being composed."""

    NEW = "new"
    REPLY = "reply"
    FORWARD = "forward"
    EDIT = "edit"
    RESEND = "resend"


class Flag(str, Enum):
    """Status markers a stored message can carry."""

    DRAFT = "draft"
    ENCRYPTED = "encrypted"
    SIGNED = "signed"
    REPLIED = "replied"
    PASSED = "passed"
    SEEN = "seen"
    FLAGGED = "flagged"
    TRASHED = "trashed"
    NEW = "new"


def strip_brackets(message_id: str) -> str:
    """Return ``message_id`` without surrounding whitespace and angle brackets."""

    value = message_id.strip()
    if value.startswith("<") and value.endswith(">"):
        value = value[1:-1]
    return value.strip()


@dataclass
class Message:
    """Snapshot of a stored message.

    Attributes:
      message_id: Opaque identifier, angle brackets removed.
      headers: Header values keyed by lower-cased header name.
      flags: Flags observed when the snapshot was taken.
      path: Storage location of the message file, when known.
      folder: Folder the message lives in, when known.
      body: Plain-text body used for citation, when loaded.
    """

    message_id: str
    headers: Dict[str, str] = field(default_factory=dict)
    flags: Set[Flag] = field(default_factory=set)
    path: Optional[str] = None
    folder: Optional[str] = None
    body: Optional[str] = None

    def __post_init__(self) -> None:
        self.message_id = strip_brackets(self.message_id)
        self.headers = {name.lower(): value for name, value in self.headers.items()}
        self.flags = {Flag(flag) for flag in self.flags}

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def is_draft(self) -> bool:
        return Flag.DRAFT in self.flags

    @property
    def is_encrypted(self) -> bool:
        return Flag.ENCRYPTED in self.flags
