"""Translate engine store commands into backend calls.

What:
  Define the command vocabulary the compose engine speaks to the message
  store (``compose``, ``add``, ``remove``, ``move``, ``mkdir``, ``sent``), the
  backend protocol implementing it, and a single dispatcher.

Why:
  Centralising the mapping between commands and backend operations lets the
  async service stay backend-agnostic, and makes unknown commands fail loudly
  instead of performing unexpected network calls.

How:
  Defines a :class:`SupportsStore` protocol describing the backend surface, a
  :class:`StoreCommand` dataclass carrying the command and its arguments, reply
  dataclasses, and an :func:`execute` dispatcher handling each command
  explicitly.

Interfaces:
  :class:`SupportsStore`, :class:`StoreCommand`, :class:`ComposeBootstrap`,
  :class:`SentReceipt`, :class:`UnsupportedCommandError`, :func:`execute`.

Invariants & Safety:
  - ``mkdir`` must be idempotent in every backend.
  - ``move`` with ``folder=None`` only changes flags.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from ..core.message import ComposeType, Message
from ..core.references import FlagDelta


@dataclass
class ComposeBootstrap:
    """Reply to a ``compose`` command: what the editor needs to build a draft.

    Attributes:
      compose_type: Kind of draft requested.
      original: Snapshot of the original message, ``None`` for new drafts.
      includes: Paths of parts to include (e.g. attachments of a forward).
      decrypted: Whether the store decrypted the original for citation.
    """

    compose_type: ComposeType
    original: Optional[Message] = None
    includes: List[str] = field(default_factory=list)
    decrypted: bool = False


@dataclass
class SentReceipt:
    """Reply to a ``sent`` command."""

    docid: str
    path: str


class SupportsStore(Protocol):
    """Protocol describing the backend operations required by :func:`execute`.

    Implementations run synchronously; :class:`~mailcompose.store.service.MessageStoreService`
    moves them off the event loop.
    """

    def compose(self, compose_type: ComposeType, decrypt: bool, message_id: Optional[str]) -> ComposeBootstrap:
        """Return the bootstrap data for a draft of ``compose_type``.

        Args:
          compose_type: Kind of draft.
          decrypt: Whether the original should be decrypted for citation.
          message_id: Identifier of the original message, if any.

        Raises:
          LookupError: When ``message_id`` is unknown to the store.
        """

    def add(self, path: str) -> Optional[str]:
        """Index the message file at ``path``; return its identifier."""

    def remove(self, docid: str) -> None:
        """Drop the message ``docid`` from the store."""

    def move(self, docid: str, folder: Optional[str], delta: Optional[FlagDelta]) -> None:
        """Apply ``delta`` to ``docid`` and move it to ``folder`` when given."""

    def mkdir(self, folder: str) -> None:
        """Create ``folder``; succeed silently when it exists."""

    def sent(self, path: str) -> SentReceipt:
        """Acknowledge that the draft stored at ``path`` has been sent."""


@dataclass
class StoreCommand:
    """Serializable representation of one store command.

    Attributes:
      name: Command name (``"add"``, ``"move"``...).
      args: Positional arguments forwarded to the backend.
    """

    name: str
    args: tuple = ()

    def describe(self) -> Dict[str, Any]:
        return {"command": self.name, "args": [str(arg) for arg in self.args]}


class UnsupportedCommandError(ValueError):
    """Signal that the engine issued an unknown store command."""


_COMMANDS = frozenset({"compose", "add", "remove", "move", "mkdir", "sent"})


def execute(command: StoreCommand, *, backend: SupportsStore) -> Any:
    """Execute ``command`` on ``backend`` and return the backend reply.

    Raises:
      UnsupportedCommandError: When the command name is not recognised.
    """

    if command.name not in _COMMANDS:
        raise UnsupportedCommandError(f"Unsupported store command {command.name}")
    if command.name == "compose":
        compose_type, decrypt, message_id = command.args
        return backend.compose(ComposeType(compose_type), bool(decrypt), message_id)
    if command.name == "add":
        (path,) = command.args
        return backend.add(str(path))
    if command.name == "remove":
        (docid,) = command.args
        return backend.remove(str(docid))
    if command.name == "move":
        docid, folder, delta = command.args
        return backend.move(str(docid), folder, delta)
    if command.name == "mkdir":
        (folder,) = command.args
        return backend.mkdir(str(folder))
    (path,) = command.args
    return backend.sent(str(path))
