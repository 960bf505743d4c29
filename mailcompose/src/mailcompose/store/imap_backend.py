"""IMAP-backed message store with mailcompose-specific guardrails.

What:
  Implement :class:`~mailcompose.store.commands.SupportsStore` on top of the
  third-party ``imapclient`` library: bootstrap originals for drafts, index
  spool files, apply flag deltas, move drafts between folders and create
  folders on demand.

Why:
  Direct use of ``imapclient`` exposes sharp edges: mailbox delimiter quirks,
  accidental sequence-number operations, and unbounded command rates.
  Centralised guardrails keep store commands predictable and auditable.

How:
  Messages are addressed by ``Message-ID`` and located with UID ``SEARCH``.
  Originals are searched across the configured folders. Drafts are searched
  only in the folder they were indexed into, then in the configured drafts
  folders, since a filed sent copy shares the draft's ``Message-ID``. Spool
  files written by the editor live under ``spool_dir/<folder>/``; the folder
  of a file is derived from its location.
  Flags map onto IMAP system flags (``\\Answered``, ``\\Seen``...) and the
  ``$Forwarded`` keyword. Mutating operations pass through :meth:`_throttle`.

Interfaces:
  :class:`ImapConfig`, :class:`ImapMessageStore`.

Invariants & Safety:
  - All operations run in UID mode; sequence-number methods are avoided.
  - ``mkdir`` is idempotent.
  - Rate limiting prevents abusive behaviour that might trigger provider bans.
"""
from __future__ import annotations

import os
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, Iterable, List, Optional, Set, Tuple

from imapclient import IMAPClient

from ..config.loader import get_runtime_config
from ..core.message import ComposeType, Flag, strip_brackets
from ..core.references import FlagDelta
from ..utils.mime import parse_message, snapshot_from_bytes
from .commands import ComposeBootstrap, SentReceipt


_IMAP_FLAGS: Dict[Flag, bytes] = {
    Flag.REPLIED: b"\\Answered",
    Flag.SEEN: b"\\Seen",
    Flag.FLAGGED: b"\\Flagged",
    Flag.DRAFT: b"\\Draft",
    Flag.TRASHED: b"\\Deleted",
    Flag.PASSED: b"$Forwarded",
}
_FROM_IMAP = {value.lower(): key for key, value in _IMAP_FLAGS.items()}


def imap_flags(flags: Iterable[Flag]) -> List[bytes]:
    """Return the IMAP spelling of ``flags``; content-derived flags are skipped."""

    return sorted(_IMAP_FLAGS[flag] for flag in flags if flag in _IMAP_FLAGS)


def engine_flags(raw: Iterable[object]) -> Set[Flag]:
    """Map IMAP flag values returned by ``FETCH FLAGS`` onto :class:`Flag`."""

    result: Set[Flag] = set()
    for value in raw:
        encoded = value if isinstance(value, bytes) else str(value).encode()
        flag = _FROM_IMAP.get(encoded.lower())
        if flag is not None:
            result.add(flag)
    return result


@dataclass
class ImapConfig:
    """Connection parameters, search folders and spool location.

    Attributes:
      host: IMAP hostname.
      username: Login credential.
      password: Password or app-specific token.
      spool_dir: Directory holding the editor's message files.
      port: IMAP port (defaults to 993).
      ssl: Whether to use TLS.
      folders: Folders searched when locating an original by identifier.
      draft_folders: Drafts folders of every context, searched for drafts
        that were not indexed by this backend.
    """

    host: str
    username: str
    password: str
    spool_dir: Path
    port: int = 993
    ssl: bool = True
    folders: List[str] = field(default_factory=lambda: ["INBOX", "Sent", "Drafts"])
    draft_folders: List[str] = field(default_factory=lambda: ["Drafts"])

    @classmethod
    def from_runtime(cls) -> "ImapConfig":
        """Build the configuration from the cached runtime configuration.

        The password is read from ``imap.password`` or, when set, from the
        environment variable named by ``imap.password_env``.

        Raises:
          RuntimeError: When the runtime configuration has no ``imap`` section
            or no password can be resolved.
        """

        settings = get_runtime_config()
        imap = settings.imap
        if imap is None:
            raise RuntimeError("IMAP store not configured")
        password = imap.password
        if imap.password_env:
            password = os.environ.get(imap.password_env, password)
        if not password:
            raise RuntimeError("IMAP password not configured")
        compose = settings.compose
        draft_folders: List[str] = []
        for folder in [compose.default_folders.drafts] + [c.folders.drafts for c in compose.contexts]:
            name = folder.strip("/")
            if name and name not in draft_folders:
                draft_folders.append(name)
        return cls(
            host=imap.host,
            username=imap.username,
            password=password,
            spool_dir=Path(settings.paths.spool_dir).expanduser(),
            port=imap.port,
            ssl=imap.ssl,
            folders=list(imap.folders),
            draft_folders=draft_folders,
        )


class ImapMessageStore:
    """Context manager exposing a rate-limited IMAP store backend.

    Owns a single ``imapclient.IMAPClient`` connection. Instances are driven by
    one :class:`~mailcompose.store.service.MessageStoreService` worker, so
    calls never overlap.
    """

    def __init__(self, config: ImapConfig):
        self._config = config
        self._client: Optional[IMAPClient] = None
        self._delimiter: str = "/"
        self._mailboxes: Set[str] = set()
        self._selected: Optional[str] = None
        self._actions: Deque[float] = deque()
        # Message-ID -> mailbox of drafts indexed by this backend
        self._drafts: Dict[str, str] = {}

    def __enter__(self) -> "ImapMessageStore":
        self._client = IMAPClient(self._config.host, port=self._config.port, ssl=self._config.ssl)
        self._client.login(self._config.username, self._config.password)
        self._refresh_mailboxes()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client is None:
            return
        try:
            self._client.logout()
        finally:
            self._client = None

    @property
    def client(self) -> IMAPClient:
        """Expose the underlying ``IMAPClient`` connection.

        Raises:
          RuntimeError: If accessed before :meth:`__enter__`.
        """

        if self._client is None:
            raise RuntimeError("IMAP client not connected")
        return self._client

    @property
    def config(self) -> ImapConfig:
        return self._config

    def _select(self, mailbox: str, *, readonly: bool = False) -> None:
        mailbox_name = self._ensure_mailbox(mailbox)
        self.client.select_folder(mailbox_name, readonly=readonly)
        self._selected = mailbox_name

    def _refresh_mailboxes(self) -> None:
        """Synchronise the mailbox cache and delimiter with the server listing."""

        self._mailboxes.clear()
        for _flags, delimiter, name in self.client.list_folders():
            if delimiter:
                decoded = delimiter.decode() if isinstance(delimiter, bytes) else str(delimiter)
                if decoded:
                    self._delimiter = decoded
            decoded_name = name.decode() if isinstance(name, bytes) else str(name)
            self._mailboxes.add(decoded_name)

    def _normalize_path(self, *parts: str) -> str:
        """Join ``parts`` using the server delimiter while trimming empties.

        Folder references such as ``/Sent`` or ``Archive.2024`` are accepted;
        ``/`` and ``.`` are both treated as separators.
        """

        delimiter = self._delimiter or "/"
        segments: List[str] = []
        for part in parts:
            candidate = part.replace("/", delimiter).replace(".", delimiter)
            for chunk in candidate.split(delimiter):
                chunk = chunk.strip()
                if chunk:
                    segments.append(chunk)
        return delimiter.join(segments)

    def _ensure_mailbox(self, mailbox: str) -> str:
        """Create ``mailbox`` if missing and return the normalised name.

        Some servers report errors for folders that already exist; on failure
        the cache is refreshed and the error is raised only when the folder is
        still missing.
        """

        normalized = self._normalize_path(mailbox)
        if normalized not in self._mailboxes:
            try:
                self.client.create_folder(normalized)
            except Exception:
                self._refresh_mailboxes()
                if normalized not in self._mailboxes:
                    raise
            else:
                self._mailboxes.add(normalized)
        return normalized

    def _throttle(self) -> None:
        """Enforce the per-minute action limit before mutating the mailbox."""

        now = time.monotonic()
        while self._actions and now - self._actions[0] > 60:
            self._actions.popleft()
        if len(self._actions) >= 500:
            raise RuntimeError("IMAP action rate limit exceeded")
        self._actions.append(now)

    def _folder_for_path(self, path: Path) -> str:
        """Return the folder of a spool file, relative to ``spool_dir``."""

        try:
            relative = path.resolve().parent.relative_to(self._config.spool_dir.resolve())
        except ValueError as exc:
            raise ValueError(f"{path} is outside the spool directory") from exc
        folder = self._normalize_path(*relative.parts)
        if not folder:
            raise ValueError(f"{path} is not inside a folder of the spool directory")
        return folder

    def _locate(self, message_id: str, folders: Iterable[str]) -> Optional[Tuple[str, int]]:
        """Return ``(mailbox, uid)`` of ``message_id`` in the first of ``folders`` holding it.

        Folders missing on the server are skipped, never created.
        """

        needle = f"<{strip_brackets(message_id)}>"
        for folder in folders:
            mailbox = self._normalize_path(folder)
            if mailbox not in self._mailboxes:
                continue
            self.client.select_folder(mailbox, readonly=True)
            self._selected = mailbox
            uids = self.client.search(["HEADER", "Message-ID", needle])
            if uids:
                return mailbox, max(uids)
        return None

    def _require(self, message_id: str, folders: Iterable[str]) -> Tuple[str, int]:
        located = self._locate(message_id, folders)
        if located is None:
            raise LookupError(f"message {message_id} not found")
        return located

    def _draft_folders(self, docid: str) -> List[str]:
        indexed = self._drafts.get(strip_brackets(docid))
        folders = [indexed] if indexed else []
        return folders + [folder for folder in self._config.draft_folders if folder != indexed]

    def compose(self, compose_type: ComposeType, decrypt: bool, message_id: Optional[str]) -> ComposeBootstrap:
        """Fetch the original of a draft and return it as a bootstrap.

        Decryption is not performed by this backend; ``decrypted`` is always
        ``False`` and the editor cites the original as stored.
        """

        if message_id is None:
            return ComposeBootstrap(compose_type=compose_type)
        mailbox, uid = self._require(message_id, self._config.folders + self._config.draft_folders)
        response = self.client.fetch([uid], ["RFC822", "FLAGS"])
        data = response[uid]
        raw = data[b"RFC822"]
        original = snapshot_from_bytes(raw, folder=mailbox, flags=engine_flags(data.get(b"FLAGS", ())))
        if not original.message_id:
            original.message_id = strip_brackets(message_id)
        return ComposeBootstrap(compose_type=compose_type, original=original, decrypted=False)

    def add(self, path: str) -> Optional[str]:
        """Append the spool file at ``path`` to the folder it lives in."""

        file_path = Path(path)
        folder = self._ensure_mailbox(self._folder_for_path(file_path))
        raw = file_path.read_bytes()
        _message, headers, _body = parse_message(raw)
        flags = [b"\\Seen"]
        if headers.get("x-mailcompose-draft"):
            flags.append(b"\\Draft")
        self._throttle()
        self.client.append(folder, raw, flags=flags)
        message_id = headers.get("message-id")
        if not message_id:
            return None
        docid = strip_brackets(message_id)
        if headers.get("x-mailcompose-draft"):
            self._drafts[docid] = folder
        return docid

    def remove(self, docid: str) -> None:
        """Expunge the draft ``docid``; filed copies sharing its identifier stay."""

        mailbox, uid = self._require(docid, self._draft_folders(docid))
        self._select(mailbox)
        self._throttle()
        self.client.delete_messages([uid])
        self.client.expunge([uid])
        self._drafts.pop(strip_brackets(docid), None)

    def move(self, docid: str, folder: Optional[str], delta: Optional[FlagDelta]) -> Optional[str]:
        """Apply ``delta`` to ``docid`` then move it to ``folder`` when given.

        A move to a folder relocates a draft and searches the drafts folders;
        a flag-only update addresses an original in the configured folders.

        Returns:
          The new spool path of the message when it was moved and a local copy
          existed, else ``None``.
        """

        if folder is None:
            mailbox, uid = self._require(docid, self._config.folders)
        else:
            mailbox, uid = self._require(docid, self._draft_folders(docid))
        self._select(mailbox)
        if delta is not None:
            added = imap_flags(delta.added)
            removed = imap_flags(delta.removed)
            if added:
                self._throttle()
                self.client.add_flags([uid], added)
            if removed:
                self._throttle()
                self.client.remove_flags([uid], removed)
        if folder is None:
            return None
        destination = self._ensure_mailbox(folder)
        self._throttle()
        self.client.move([uid], destination)
        self._drafts[strip_brackets(docid)] = destination
        return self._relocate_spool_file(docid, mailbox, destination)

    def _relocate_spool_file(self, docid: str, source: str, destination: str) -> Optional[str]:
        source_dir = self._config.spool_dir.joinpath(*source.split(self._delimiter))
        if not source_dir.is_dir():
            return None
        needle = strip_brackets(docid)
        for candidate in sorted(source_dir.glob("*.eml")):
            _message, headers, _body = parse_message(candidate.read_bytes())
            if strip_brackets(headers.get("message-id", "")) != needle:
                continue
            target_dir = self._config.spool_dir.joinpath(*destination.split(self._delimiter))
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / candidate.name
            candidate.replace(target)
            return str(target)
        return None

    def mkdir(self, folder: str) -> None:
        self._ensure_mailbox(folder)

    def sent(self, path: str) -> SentReceipt:
        """Return the identifier of the sent draft at ``path``.

        The draft is looked up only in the folder its spool file lives in.
        Drafts never indexed before sending are appended first so that the
        following ``remove`` finds them.
        """

        file_path = Path(path)
        folder = self._folder_for_path(file_path)
        _message, headers, _body = parse_message(file_path.read_bytes())
        message_id = headers.get("message-id")
        if not message_id:
            raise ValueError(f"{path} carries no Message-ID")
        docid = strip_brackets(message_id)
        if self._locate(docid, [folder]) is None:
            self.add(path)
        self._drafts[docid] = folder
        return SentReceipt(docid=docid, path=path)
