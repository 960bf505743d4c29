"""Compose session state machine.

What:
  Drive one draft from the compose request to its disposition:
  ``INITIATING → CONTEXT_RESOLVING → EDITOR_OPEN → SENDING → DISPOSING →
  CLOSED``, or ``DISCARDED`` when the operator aborts or cancels.

Why:
  The decisions taken for a draft (context, crypto, filing, parent flags) are
  spread over time and over two asynchronous collaborators, the editor and the
  message store. Keeping them on one session object means there is no
  process-wide state and every decision can be traced to a session.

How:
  :meth:`ComposeSession.start` validates the request, runs pre-compose hooks,
  resolves the context through a :class:`~mailcompose.core.contexts.ContextRegistry`,
  requests the compose bootstrap from the store, opens the draft and applies
  the crypto decision. The editor's before-send and send-completion signals
  drive :meth:`_on_before_send` and :meth:`_on_sent`. Disposition is resolved
  lazily at send time. Bookkeeping commands to the store are fire-and-forget;
  only the compose bootstrap, the sent receipt and the move of a context
  switch are awaited.

Interfaces:
  :class:`ComposeRequest`, :class:`SessionState`, :class:`ComposeSession`,
  :func:`validate_request`.

Invariants & Safety:
  - Validation errors are raised before any session object exists.
  - The compose type never changes after start.
  - Only EDITOR_OPEN can be cancelled; each step of DISPOSING is best-effort.
  - The crypto decision only changes through :meth:`ComposeSession.reconfigure_crypto`
    while SENDING.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..config.settings import ComposeSettings
from ..errors import InvalidState, MissingSource, StoreError
from ..utils.ids import new_session_id
from ..utils.logging import JsonLogger, get_logger
from .contexts import AskCallback, Context, ContextRegistry
from .disposition import FccFiler, FolderSet, resolve_disposition
from .message import ComposeType, Message, strip_brackets
from .policy import CryptoDecision, apply_crypto, resolve_crypto
from .references import infer_reference, propagate_reference


class SessionState(str, Enum):
    INITIATING = "initiating"
    CONTEXT_RESOLVING = "context-resolving"
    EDITOR_OPEN = "editor-open"
    SENDING = "sending"
    DISPOSING = "disposing"
    CLOSED = "closed"
    DISCARDED = "discarded"


@dataclass
class ComposeRequest:
    """What the operator asked for.

    Attributes:
      compose_type: Kind of draft.
      original: Message being answered, forwarded, edited or resent.
      includes: Files to attach to the draft.
    """

    compose_type: ComposeType
    original: Optional[Message] = None
    includes: List[str] = field(default_factory=list)


PreComposeHook = Callable[[ComposeRequest], Any]
PreSendHook = Callable[["ComposeSession"], Any]


def validate_request(request: ComposeRequest) -> None:
    """Reject requests that cannot start a session.

    Raises:
      InvalidState: For a new message carrying an original, or an edit of a
        message that is not a draft.
      MissingSource: For a reply, forward, resend or edit without original.
    """

    compose_type = request.compose_type
    original = request.original
    if compose_type is ComposeType.NEW:
        if original is not None:
            raise InvalidState("a new message cannot carry an original")
        return
    if original is None:
        raise MissingSource(f"{compose_type.value} requires an original message")
    if compose_type is ComposeType.EDIT and not original.is_draft:
        raise InvalidState(f"message {original.message_id} is not a draft")


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class ComposeSession:
    """One draft and every decision taken for it.

    Attributes:
      session_id: Unique identifier used in log records.
      compose_type: Kind of draft; fixed for the lifetime of the session.
      original_id: Identifier of the original message, if any.
      context: Context in effect, ``None`` when no context applies.
      decision: Crypto decision currently applied to the draft.
      handle: Editor handle of the draft.
      state: Current :class:`SessionState`.
      fcc_target: Folder receiving the sent copy, resolved at send time.
      docid: Store identifier acknowledged for the sent draft.
    """

    def __init__(
        self,
        request: ComposeRequest,
        *,
        settings: ComposeSettings,
        registry: ContextRegistry,
        editor,
        store,
        pre_send_hooks: Sequence[PreSendHook] = (),
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self.session_id = new_session_id()
        self.compose_type = request.compose_type
        self.original_id = request.original.message_id if request.original is not None else None
        self.settings = settings
        self.registry = registry
        self.editor = editor
        self.store = store
        self.pre_send_hooks = list(pre_send_hooks)
        base = logger or get_logger("session")
        self.logger = base.child("session")
        self.context: Optional[Context] = None
        self.decision = CryptoDecision()
        self.handle = None
        self.state = SessionState.INITIATING
        self.fcc_target: Optional[str] = None
        self.docid: Optional[str] = None
        self._filer = FccFiler(store, editor, self.logger)

    @classmethod
    async def start(
        cls,
        request: ComposeRequest,
        *,
        settings: ComposeSettings,
        editor,
        store,
        registry: Optional[ContextRegistry] = None,
        ask: Optional[AskCallback] = None,
        pre_compose_hooks: Iterable[PreComposeHook] = (),
        pre_send_hooks: Sequence[PreSendHook] = (),
        logger: Optional[JsonLogger] = None,
    ) -> "ComposeSession":
        """Start a session for ``request`` and open its draft.

        Args:
          request: Compose request.
          settings: Engine settings (policy, behaviours, folders).
          editor: :class:`~mailcompose.editor.surface.EditorSurface`.
          store: :class:`~mailcompose.store.service.MessageStoreService` or
            any object offering the same methods.
          registry: Context registry; defaults to one built from ``settings``.
          ask: Prompt callback used by the context selector.
          pre_compose_hooks: Callables receiving ``request`` before anything
            else happens.
          pre_send_hooks: Callables receiving the session on each send attempt.
          logger: Structured logger.

        Returns:
          The session, in ``EDITOR_OPEN`` or, when the operator aborted the
          context prompt, ``DISCARDED``.

        Raises:
          InvalidState, MissingSource: For invalid requests.
          ConfigurationError: When the context policy needs a prompt and
            ``ask`` is ``None``.
          StoreError: When the store cannot provide the compose bootstrap.
        """

        validate_request(request)
        for hook in pre_compose_hooks:
            await _maybe_await(hook(request))
        session = cls(
            request,
            settings=settings,
            registry=registry if registry is not None else settings.registry(),
            editor=editor,
            store=store,
            pre_send_hooks=pre_send_hooks,
            logger=logger,
        )
        await session._open(request, ask)
        return session

    @property
    def folders(self) -> FolderSet:
        return self.settings.folders_for(self.context)

    @property
    def identity_header(self) -> str:
        return "Resent-From" if self.compose_type is ComposeType.RESEND else "From"

    def _require_state(self, *allowed: SessionState) -> None:
        if self.state not in allowed:
            names = ", ".join(state.value for state in allowed)
            raise InvalidState(f"session is {self.state.value}; expected {names}")

    def _log_fields(self) -> dict:
        return {
            "session": self.session_id,
            "compose_type": self.compose_type.value,
            "context": self.context.name if self.context else None,
        }

    async def _open(self, request: ComposeRequest, ask: Optional[AskCallback]) -> None:
        self.state = SessionState.CONTEXT_RESOLVING
        choice = self.registry.select(
            self.settings.context_policy, request.original, ask, commit=False
        )
        if choice.aborted:
            self.state = SessionState.DISCARDED
            self.logger.info("session_aborted", **self._log_fields())
            return
        self.context = choice.context

        original_encrypted = request.original.is_encrypted if request.original is not None else False
        try:
            bootstrap = await self.store.compose_request(
                self.compose_type, original_encrypted, self.original_id
            )
        except Exception as exc:
            self.state = SessionState.DISCARDED
            self.logger.error("compose_bootstrap_failed", error=str(exc), **self._log_fields())
            raise StoreError("compose", str(exc)) from exc

        original = request.original
        includes = list(request.includes)
        if bootstrap is not None:
            if bootstrap.original is not None:
                original = bootstrap.original
            includes.extend(bootstrap.includes)
        identity = self.context.identity if self.context is not None else None
        self.handle = self.editor.open_draft(
            self.compose_type, original, includes=includes, identity=identity
        )
        if identity is not None:
            self.editor.set_header(self.handle, self.identity_header, identity)

        self.decision = resolve_crypto(self.compose_type, original_encrypted, self.settings.policy)
        apply_crypto(self.editor, self.handle, self.decision, method=self.settings.crypto_method)
        self.editor.on_before_send(self.handle, self._on_before_send)
        self.editor.on_send_completion(self.handle, self._on_sent)
        if self.context is not None:
            self.registry.current = self.context
        self.state = SessionState.EDITOR_OPEN
        self.logger.info(
            "session_started",
            original=self.original_id,
            crypto=self.decision.mode,
            **self._log_fields(),
        )

    async def send(self) -> Any:
        """Ask the editor to send the draft.

        A failed attempt returns the session to ``EDITOR_OPEN`` so the operator
        may retry or cancel.
        """

        self._require_state(SessionState.EDITOR_OPEN, SessionState.SENDING)
        try:
            return await self.editor.send(self.handle)
        except Exception as exc:
            if self.state is SessionState.SENDING:
                self.state = SessionState.EDITOR_OPEN
                self.logger.warning("send_failed", error=str(exc), **self._log_fields())
            raise

    async def _on_before_send(self, handle) -> None:
        self._require_state(SessionState.EDITOR_OPEN, SessionState.SENDING)
        self.state = SessionState.SENDING
        for hook in self.pre_send_hooks:
            await _maybe_await(hook(self))
        self.fcc_target = resolve_disposition(self.settings.sent_behavior, self.folders)
        self._filer.prepare(handle, self.fcc_target)
        self.logger.info("send_prepared", fcc=self.fcc_target, crypto=self.decision.mode, **self._log_fields())

    async def _on_sent(self, handle) -> None:
        self._require_state(SessionState.SENDING)
        self.state = SessionState.DISPOSING
        path = self.editor.draft_path(handle)
        if path is not None:
            await self._acknowledge_sent(path)
        # a resend keeps the original's threading headers but answers nothing
        link = None
        if self.compose_type is not ComposeType.RESEND:
            try:
                link = infer_reference(self.editor.headers(handle))
            except Exception as exc:
                self.logger.warning("reference_lookup_failed", error=str(exc), **self._log_fields())
        propagate_reference(self.store, link, self.logger)
        if path is not None:
            try:
                self.editor.close_views(path)
            except Exception as exc:
                self.logger.warning("close_views_failed", path=path, error=str(exc), **self._log_fields())
        self.editor.discard(handle)
        self.state = SessionState.CLOSED
        self.logger.info("session_closed", docid=self.docid, **self._log_fields())

    async def _acknowledge_sent(self, path: str) -> None:
        try:
            receipt = await self.store.sent(path)
        except Exception as exc:
            self.logger.warning("sent_ack_failed", path=path, error=str(exc), **self._log_fields())
            return
        self.docid = getattr(receipt, "docid", receipt)
        if not self.docid:
            return
        try:
            self.store.remove(self.docid)
        except Exception as exc:
            self.logger.warning("draft_remove_failed", docid=self.docid, error=str(exc), **self._log_fields())

    def cancel(self) -> None:
        """Discard the draft.

        Raises:
          InvalidState: Once sending has started.
        """

        if self.state is SessionState.DISCARDED:
            return
        self._require_state(SessionState.EDITOR_OPEN)
        if self.handle is not None:
            self.editor.discard(self.handle)
        self.state = SessionState.DISCARDED
        self.logger.info("session_discarded", **self._log_fields())

    def save_draft(self) -> str:
        """Persist the draft into the drafts folder and index it.

        Returns:
          Path of the persisted draft.
        """

        self._require_state(SessionState.EDITOR_OPEN)
        folder = self.folders.drafts
        self._filer.ensure_folder(folder)
        path = self.editor.save(self.handle, folder)
        self.store.add(path)
        self.logger.info("draft_persisted", folder=folder, **self._log_fields())
        return path

    async def switch_context(self, context: Context) -> None:
        """Make ``context`` current for the open draft.

        A persisted draft is moved to the drafts folder of ``context`` first;
        the identity header and the editor's file binding change together and
        only once the store confirmed the move.

        Raises:
          InvalidState: Outside ``EDITOR_OPEN``.
          StoreError: When the store cannot move the draft; nothing changed.
        """

        self._require_state(SessionState.EDITOR_OPEN)
        path = self.editor.draft_path(self.handle)
        new_path: Optional[str] = None
        target = self.settings.folders_for(context).drafts
        if path is not None:
            message_id = self.editor.header_value(self.handle, "Message-ID") or ""
            try:
                new_path = await self.store.move(strip_brackets(message_id), target, None)
            except Exception as exc:
                self.logger.warning("context_switch_failed", target=context.name, error=str(exc), **self._log_fields())
                raise StoreError("move", str(exc)) from exc
        previous = self.context
        self.context = context
        self.registry.current = context
        self.editor.set_header(self.handle, self.identity_header, context.identity)
        if new_path:
            self.editor.rebind(self.handle, new_path)
        self.logger.info(
            "context_switched",
            previous=previous.name if previous else None,
            moved=path is not None,
            **self._log_fields(),
        )

    def reconfigure_crypto(self, *, sign: bool, encrypt: bool) -> CryptoDecision:
        """Replace the crypto decision from a pre-send hook.

        Raises:
          InvalidState: Outside ``SENDING``.
        """

        self._require_state(SessionState.SENDING)
        self.decision = CryptoDecision(sign=sign, encrypt=encrypt)
        self.editor.apply_secure_operation(self.handle, self.decision, method=self.settings.crypto_method)
        self.logger.info("crypto_reconfigured", crypto=self.decision.mode, **self._log_fields())
        return self.decision
