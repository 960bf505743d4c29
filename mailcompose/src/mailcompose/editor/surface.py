"""Interface between compose sessions and the text editor holding a draft.

What:
  Describe the operations a compose session needs from an editor: opening a
  draft, reading and writing headers, requesting a secure operation,
  persisting the draft, registering send hooks and closing views.

Why:
  Sessions must not depend on a concrete editor. Tests drive them with a
  recording double while :class:`~mailcompose.editor.draft.EmailDraftEditor`
  provides a working implementation on top of the ``email`` package.

Interfaces:
  :class:`DraftHandle`, :class:`EditorSurface`, :data:`SendCallback`,
  :data:`FccCallback`.

Invariants & Safety:
  - Exactly one Fcc hook is registered per handle; :meth:`EditorSurface.register_fcc`
    returns ``False`` and keeps the existing hook when called again.
  - Send callbacks may be plain callables or coroutine functions.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Union

from ..core.message import ComposeType, Message
from ..core.policy import CryptoDecision


_COUNTER = itertools.count(1)


@dataclass(eq=False)
class DraftHandle:
    """Opaque reference to a draft open in an editor."""

    handle_id: int = field(default_factory=lambda: next(_COUNTER))

    def __repr__(self) -> str:
        return f"DraftHandle({self.handle_id})"


SendCallback = Callable[[DraftHandle], Union[None, Awaitable[None]]]
FccCallback = Callable[[str], Any]


class EditorSurface(Protocol):
    """Editor operations consumed by :class:`~mailcompose.core.session.ComposeSession`."""

    def open_draft(
        self,
        compose_type: ComposeType,
        original: Optional[Message] = None,
        *,
        includes: Iterable[str] = (),
        identity: Optional[str] = None,
    ) -> DraftHandle:
        """Open a new draft built for ``compose_type`` from ``original``."""

    def apply_secure_operation(self, handle: DraftHandle, decision: CryptoDecision, *, method: str) -> None:
        """Insert the secure tag for ``decision``, replacing any previous one."""

    def header_value(self, handle: DraftHandle, name: str) -> Optional[str]:
        ...

    def headers(self, handle: DraftHandle) -> dict:
        """Return the draft headers keyed by lower-case name."""

    def set_header(self, handle: DraftHandle, name: str, value: str) -> None:
        ...

    def remove_header(self, handle: DraftHandle, name: str) -> None:
        ...

    def on_before_send(self, handle: DraftHandle, callback: SendCallback) -> None:
        """Register ``callback`` to run on every send attempt."""

    def on_send_completion(self, handle: DraftHandle, callback: SendCallback) -> None:
        """Register ``callback`` to run once the message has been transmitted."""

    def register_fcc(self, handle: DraftHandle, folder: str, hook: FccCallback) -> bool:
        """File a copy into ``folder`` at send time and call ``hook`` with its path."""

    def unregister_fcc(self, handle: DraftHandle) -> None:
        ...

    def draft_path(self, handle: DraftHandle) -> Optional[str]:
        """Return where the draft is persisted, ``None`` when never saved."""

    def save(self, handle: DraftHandle, folder: str) -> str:
        """Persist the draft into ``folder`` and return its path."""

    def rebind(self, handle: DraftHandle, path: str) -> None:
        """Point ``handle`` at ``path`` after the store moved the draft."""

    def close_views(self, path: str) -> int:
        """Close every open draft visiting ``path``; return how many were closed."""

    async def send(self, handle: DraftHandle) -> Any:
        """Run send callbacks, transmit, file the Fcc copy, run completion callbacks."""

    def discard(self, handle: DraftHandle) -> None:
        ...
