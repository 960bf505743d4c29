"""Post-send disposition of messages.

What:
  Decide where the filed copy (Fcc) of a sent message goes (the sent folder,
  the trash folder, or nowhere) and wire the side effects that keep the message
  store in sync with the copy the editor writes.

Why:
  The sent-message behaviour may depend on state only known at send time, so
  it can be configured as a zero-argument callable that is evaluated lazily.
  The filed copy is written by the editor, not by the engine, so indexing it
  has to hang off an editor completion hook that must fire once per send even
  when the operator retries a failed transmission.

How:
  :func:`resolve_disposition` maps a :class:`SentBehavior` to a folder of the
  active :class:`FolderSet`. :class:`FccFiler` issues an idempotent ``mkdir``
  and registers a one-shot :class:`FccHook` with the editor. Folder creation
  and the ``add`` of the filed copy are not ordered against each other; the
  store creates folders on demand and reconciles.

Interfaces:
  :class:`SentBehavior`, :class:`FolderSet`, :func:`resolve_disposition`,
  :class:`FccHook`, :class:`FccFiler`.

Invariants & Safety:
  - ``DELETE`` never triggers folder creation or indexing.
  - Unsupported behaviour values raise :class:`ConfigurationError`; there is no
    silent default.
  - A filer issues at most one ``mkdir`` per target folder.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Set, Union

from ..errors import ConfigurationError
from ..utils.logging import JsonLogger


class SentBehavior(str, Enum):
    """What happens to a message after it has been sent."""

    SENT = "sent"
    TRASH = "trash"
    DELETE = "delete"


BehaviorSource = Union[SentBehavior, str, Callable[[], Union[SentBehavior, str]]]


@dataclass(frozen=True)
class FolderSet:
    """Folder references used by one identity."""

    drafts: str = "/Drafts"
    sent: str = "/Sent"
    trash: str = "/Trash"


def _coerce(value: object) -> SentBehavior:
    if isinstance(value, SentBehavior):
        return value
    if isinstance(value, str):
        try:
            return SentBehavior(value.lower())
        except ValueError:
            pass
    raise ConfigurationError(f"unsupported sent-message behaviour: {value!r}")


def resolve_disposition(behavior: BehaviorSource, folders: FolderSet) -> Optional[str]:
    """Return the folder receiving the filed copy, or ``None`` for no copy.

    What:
      Evaluate ``behavior`` (calling it when it is a callable) and map it onto
      ``folders``.

    Why:
      Callers invoke this at send time only; evaluating a callable behaviour
      earlier would freeze a decision that may depend on the final message.

    Args:
      behavior: A :class:`SentBehavior`, its string spelling, or a callable
        returning either.
      folders: Folder set of the active context.

    Returns:
      ``folders.sent`` for ``SENT``, ``folders.trash`` for ``TRASH``, ``None``
      for ``DELETE``.

    Raises:
      ConfigurationError: If the value is not a supported behaviour.
    """

    value = behavior() if callable(behavior) else behavior
    resolved = _coerce(value)
    if resolved is SentBehavior.DELETE:
        return None
    if resolved is SentBehavior.TRASH:
        return folders.trash
    return folders.sent


class FccHook:
    """One-shot hook indexing the filed copy once the editor has written it."""

    def __init__(self, filer: "FccFiler", handle) -> None:
        self._filer = filer
        self._handle = handle
        self.fired = False

    def __call__(self, path: str) -> None:
        if self.fired:
            return
        self.fired = True
        self._filer.store.add(path)
        self._filer.logger.info("fcc_indexed", path=path)
        self._filer.editor.unregister_fcc(self._handle)


class FccFiler:
    """Prepare filing of a sent copy against an editor and a message store.

    What:
      Ensure the target folder exists in the store and register exactly one
      completion hook per draft handle with the editor.

    Why:
      The send operation may be attempted several times (transport failures,
      operator retries). Each attempt re-runs disposition; without idempotent
      registration the store would be told to index the same copy repeatedly.

    How:
      Remember which folders this filer already asked the store to create and
      rely on :meth:`EditorSurface.register_fcc` returning ``False`` when a hook
      is already in place for the handle.

    Attributes:
      store: Message-store service receiving ``mkdir`` and ``add`` commands.
      editor: Editor surface writing the filed copy.
      logger: Structured logger.
    """

    def __init__(self, store, editor, logger: JsonLogger) -> None:
        self.store = store
        self.editor = editor
        self.logger = logger
        self._created: Set[str] = set()

    def ensure_folder(self, target: str) -> bool:
        """Ask the store to create ``target`` unless already requested.

        Returns:
          ``True`` when a ``mkdir`` command was issued, ``False`` for a repeat.
        """

        if target in self._created:
            return False
        self._created.add(target)
        self.store.mkdir(target)
        return True

    def prepare(self, handle, target: Optional[str]) -> bool:
        """Wire folder creation and the indexing hook for ``handle``.

        Args:
          handle: Editor draft handle about to be sent.
          target: Folder from :func:`resolve_disposition`; ``None`` keeps no copy.

        Returns:
          ``True`` when a new hook was registered.
        """

        if target is None:
            self.editor.unregister_fcc(handle)
            self.logger.info("fcc_skipped", reason="delete")
            return False
        self.ensure_folder(target)
        registered = self.editor.register_fcc(handle, target, FccHook(self, handle))
        self.logger.info("fcc_prepared", folder=target, new_hook=registered)
        return registered
