"""Plain-text draft editor built on the standard ``email`` package.

What:
  Provide :class:`EmailDraftEditor`, a working :class:`~mailcompose.editor.surface.EditorSurface`
  that builds reply, forward, edit and resend drafts, keeps them as
  :class:`email.message.EmailMessage` headers plus a text body, persists them as
  spool files and sends them through a caller-supplied transport.

Why:
  The compose engine needs a concrete editor to run end to end (CLI, tests)
  without pulling in a rich-text editing stack.

How:
  Each open draft is an internal :class:`_Draft` record keyed by its
  :class:`DraftHandle`. Secure operations are expressed as an MML tag
  (``<#secure method=pgpmime mode=signencrypt>``) placed at the top of the
  body; a downstream mailer performs the actual cryptography. Spool files live
  at ``spool_dir/<folder>/<uuid>.eml``.

Interfaces:
  :class:`EmailDraftEditor`, :func:`secure_tag`.

Invariants & Safety:
  - At most one secure tag per draft; re-applying replaces it.
  - At most one Fcc hook per draft.
  - Send callbacks run in registration order and may be coroutines.
"""
from __future__ import annotations

import inspect
import mimetypes
import re
import uuid
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formatdate
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.message import ComposeType, Message
from ..core.policy import CryptoDecision
from ..utils.ids import new_message_id
from ..utils.logging import JsonLogger
from .surface import DraftHandle, FccCallback, SendCallback


DRAFT_MARKER = "X-Mailcompose-Draft"
"""Header marking persisted drafts; stripped from transmitted messages."""

_SKIPPED_HEADERS = frozenset(
    {"content-type", "content-transfer-encoding", "mime-version", DRAFT_MARKER.lower()}
)
_REPLY_PREFIX = re.compile(r"^\s*re\s*:", re.IGNORECASE)
_FORWARD_PREFIX = re.compile(r"^\s*(fwd?|fw)\s*:", re.IGNORECASE)
_SECURE_TAG = re.compile(r"^<#secure [^>]*>\n?")

Transport = Callable[[EmailMessage], Any]


def secure_tag(decision: CryptoDecision, method: str) -> Optional[str]:
    """Return the MML secure tag for ``decision`` or ``None`` for plain drafts."""

    if decision.mode is None:
        return None
    return f"<#secure method={method} mode={decision.mode}>"


def _header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass(eq=False)
class _Draft:
    handle: DraftHandle
    compose_type: ComposeType
    headers: EmailMessage
    body: str = ""
    secure: Optional[str] = None
    path: Optional[Path] = None
    attachments: List[Path] = field(default_factory=list)
    fcc: Optional[Tuple[str, FccCallback]] = None
    before_send: List[SendCallback] = field(default_factory=list)
    after_send: List[SendCallback] = field(default_factory=list)


class EmailDraftEditor:
    """Editor keeping drafts in memory and on disk under ``spool_dir``.

    Args:
      spool_dir: Root directory of the spool; folders map to subdirectories.
      transport: Callable (or coroutine function) receiving the rendered
        message when it is sent.
      logger: Structured logger.
    """

    def __init__(self, spool_dir: Path, *, transport: Transport, logger: JsonLogger) -> None:
        self.spool_dir = Path(spool_dir)
        self.transport = transport
        self.logger = logger
        self._drafts: Dict[DraftHandle, _Draft] = {}

    def _require(self, handle: DraftHandle) -> _Draft:
        try:
            return self._drafts[handle]
        except KeyError:
            raise KeyError(f"{handle!r} is not open") from None

    def is_open(self, handle: DraftHandle) -> bool:
        return handle in self._drafts

    def open_drafts(self) -> List[DraftHandle]:
        return list(self._drafts)

    def open_draft(
        self,
        compose_type: ComposeType,
        original: Optional[Message] = None,
        *,
        includes: Iterable[str] = (),
        identity: Optional[str] = None,
    ) -> DraftHandle:
        """Open a draft of ``compose_type`` built from ``original``.

        Replies address the ``Reply-To`` (or ``From``) of the original, cite its
        body and carry ``In-Reply-To`` plus the extended ``References`` chain.
        Forwards carry the forwarded message as their only reference and no
        ``In-Reply-To``. Edits and resends start from the original headers and
        body; an edit keeps the original's path.
        """

        headers = EmailMessage()
        body = ""
        path: Optional[Path] = None
        if compose_type in (ComposeType.EDIT, ComposeType.RESEND) and original is not None:
            for name, value in original.headers.items():
                if name not in _SKIPPED_HEADERS:
                    headers[_header_name(name)] = value
            body = original.body or ""
            if compose_type is ComposeType.EDIT and original.path:
                path = Path(original.path)
            if compose_type is ComposeType.RESEND and identity:
                headers["Resent-From"] = identity
        else:
            headers["Message-ID"] = new_message_id(identity)
            if compose_type is ComposeType.REPLY and original is not None:
                body = self._build_reply(headers, original)
            elif compose_type is ComposeType.FORWARD and original is not None:
                body = self._build_forward(headers, original)
        if identity and compose_type is not ComposeType.RESEND:
            del headers["From"]
            headers["From"] = identity
        draft = _Draft(
            handle=DraftHandle(),
            compose_type=compose_type,
            headers=headers,
            body=body,
            path=path,
            attachments=[Path(item) for item in includes],
        )
        self._drafts[draft.handle] = draft
        self.logger.debug("draft_opened", handle=draft.handle.handle_id, compose_type=compose_type.value)
        return draft.handle

    @staticmethod
    def _build_reply(headers: EmailMessage, original: Message) -> str:
        subject = original.header("subject", "") or ""
        headers["Subject"] = subject if _REPLY_PREFIX.match(subject) else f"Re: {subject}"
        recipient = original.header("reply-to") or original.header("from")
        if recipient:
            headers["To"] = recipient
        parent = f"<{original.message_id}>"
        headers["In-Reply-To"] = parent
        chain = (original.header("references") or "").split()
        headers["References"] = " ".join(chain + [parent])
        author = original.header("from", "someone")
        date = original.header("date")
        intro = f"On {date}, {author} wrote:" if date else f"{author} wrote:"
        cited = "\n".join(f"> {line}" if line else ">" for line in (original.body or "").splitlines())
        return f"\n\n{intro}\n{cited}\n"

    @staticmethod
    def _build_forward(headers: EmailMessage, original: Message) -> str:
        subject = original.header("subject", "") or ""
        headers["Subject"] = subject if _FORWARD_PREFIX.match(subject) else f"Fwd: {subject}"
        headers["References"] = f"<{original.message_id}>"
        lines = ["", "", "---------- Forwarded message ----------"]
        for name in ("from", "date", "subject", "to"):
            value = original.header(name)
            if value:
                lines.append(f"{_header_name(name)}: {value}")
        lines.append("")
        lines.append(original.body or "")
        return "\n".join(lines)

    def apply_secure_operation(self, handle: DraftHandle, decision: CryptoDecision, *, method: str) -> None:
        draft = self._require(handle)
        draft.secure = secure_tag(decision, method)
        self.logger.debug("secure_tag_applied", handle=handle.handle_id, mode=decision.mode, method=method)

    def secure_tag(self, handle: DraftHandle) -> Optional[str]:
        return self._require(handle).secure

    def header_value(self, handle: DraftHandle, name: str) -> Optional[str]:
        value = self._require(handle).headers.get(name)
        return None if value is None else str(value)

    def headers(self, handle: DraftHandle) -> Dict[str, str]:
        return {name.lower(): str(value) for name, value in self._require(handle).headers.items()}

    def set_header(self, handle: DraftHandle, name: str, value: str) -> None:
        headers = self._require(handle).headers
        del headers[name]
        headers[name] = value

    def remove_header(self, handle: DraftHandle, name: str) -> None:
        del self._require(handle).headers[name]

    def body(self, handle: DraftHandle) -> str:
        return self._require(handle).body

    def set_body(self, handle: DraftHandle, text: str) -> None:
        self._require(handle).body = _SECURE_TAG.sub("", text)

    def on_before_send(self, handle: DraftHandle, callback: SendCallback) -> None:
        self._require(handle).before_send.append(callback)

    def on_send_completion(self, handle: DraftHandle, callback: SendCallback) -> None:
        self._require(handle).after_send.append(callback)

    def register_fcc(self, handle: DraftHandle, folder: str, hook: FccCallback) -> bool:
        draft = self._require(handle)
        if draft.fcc is not None:
            if draft.fcc[0] != folder:
                draft.fcc = (folder, draft.fcc[1])
            return False
        draft.fcc = (folder, hook)
        return True

    def unregister_fcc(self, handle: DraftHandle) -> None:
        draft = self._drafts.get(handle)
        if draft is not None:
            draft.fcc = None

    def fcc_folder(self, handle: DraftHandle) -> Optional[str]:
        fcc = self._require(handle).fcc
        return fcc[0] if fcc else None

    def draft_path(self, handle: DraftHandle) -> Optional[str]:
        path = self._require(handle).path
        return None if path is None else str(path)

    def folder_dir(self, folder: str) -> Path:
        parts = [part for part in re.split(r"[/.]", folder) if part.strip()]
        if not parts:
            raise ValueError(f"invalid folder reference {folder!r}")
        return self.spool_dir.joinpath(*parts)

    def render(self, handle: DraftHandle, *, draft_copy: bool = False) -> EmailMessage:
        """Assemble the full message of ``handle``.

        Args:
          draft_copy: Include the draft marker header (for persisted drafts).
        """

        draft = self._require(handle)
        message = EmailMessage()
        for name, value in draft.headers.items():
            message[name] = value
        if "Date" not in message:
            message["Date"] = formatdate(localtime=True)
        if draft_copy:
            message[DRAFT_MARKER] = "yes"
        text = f"{draft.secure}\n{draft.body}" if draft.secure else draft.body
        message.set_content(text)
        for attachment in draft.attachments:
            ctype, _encoding = mimetypes.guess_type(attachment.name)
            maintype, subtype = (ctype or "application/octet-stream").split("/", 1)
            message.add_attachment(
                attachment.read_bytes(), maintype=maintype, subtype=subtype, filename=attachment.name
            )
        return message

    def _write(self, folder: str, message: EmailMessage, existing: Optional[Path] = None) -> Path:
        directory = self.folder_dir(folder)
        directory.mkdir(parents=True, exist_ok=True)
        if existing is not None and existing.parent == directory:
            target = existing
        else:
            target = directory / f"{uuid.uuid4().hex}.eml"
        target.write_bytes(bytes(message))
        return target

    def save(self, handle: DraftHandle, folder: str) -> str:
        draft = self._require(handle)
        draft.path = self._write(folder, self.render(handle, draft_copy=True), draft.path)
        self.logger.info("draft_saved", handle=handle.handle_id, path=str(draft.path))
        return str(draft.path)

    def rebind(self, handle: DraftHandle, path: str) -> None:
        self._require(handle).path = Path(path)

    async def send(self, handle: DraftHandle) -> Optional[EmailMessage]:
        """Send the draft of ``handle``.

        Before-send callbacks run on every attempt. When the transport raises,
        the exception propagates and the draft stays open for a retry.
        Otherwise the Fcc copy is written and its hook called, then the
        completion callbacks run.

        Returns:
          The transmitted message, or ``None`` when a before-send callback
          closed the draft.
        """

        draft = self._require(handle)
        for callback in list(draft.before_send):
            await _maybe_await(callback(handle))
        if not self.is_open(handle):
            self.logger.info("send_abandoned", handle=handle.handle_id)
            return None
        message = self.render(handle)
        await _maybe_await(self.transport(message))
        self.logger.info("message_transmitted", handle=handle.handle_id)
        if draft.fcc is not None:
            folder, hook = draft.fcc
            copy = self._write(folder, message)
            await _maybe_await(hook(str(copy)))
        for callback in list(draft.after_send):
            await _maybe_await(callback(handle))
        return message

    def close_views(self, path: str) -> int:
        target = Path(path)
        closing = [handle for handle, draft in self._drafts.items() if draft.path == target]
        for handle in closing:
            del self._drafts[handle]
        if closing:
            self.logger.debug("views_closed", path=path, count=len(closing))
        return len(closing)

    def discard(self, handle: DraftHandle) -> None:
        """Close ``handle`` without sending; persisted files are left untouched."""

        if self._drafts.pop(handle, None) is not None:
            self.logger.debug("draft_discarded", handle=handle.handle_id)
