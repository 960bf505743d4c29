"""Asynchronous request/response facade over a message-store backend.

What:
  Address a synchronous :class:`~mailcompose.store.commands.SupportsStore`
  backend as an asyncio service: every command is queued, executed on a worker
  task, and answered through a future.

Why:
  The compose engine treats the store as fire-and-forget for bookkeeping
  (``add``, ``remove``, flag ``move``, ``mkdir``) and only awaits replies it
  needs (compose bootstrap, ``sent`` receipt, draft relocation). Backends such
  as IMAP block, so they must run off the event loop.

How:
  :meth:`MessageStoreService.submit` creates a future on the running loop and
  enqueues the command; the worker runs :func:`execute` through
  :func:`asyncio.to_thread`. A done-callback logs every failure, which also
  marks the exception as retrieved for callers that never await.

Interfaces:
  :class:`MessageStoreService`.

Invariants & Safety:
  - Commands are executed one at a time; callers must still not rely on the
    order of independently issued commands.
  - Failures of un-awaited commands are logged as ``store_command_failed`` and
    never raised into the engine.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from ..core.message import ComposeType
from ..core.references import FlagDelta
from ..utils.logging import JsonLogger
from .commands import StoreCommand, SupportsStore, execute


class MessageStoreService:
    """Queue-backed asyncio service issuing commands to a store backend."""

    def __init__(self, backend: SupportsStore, *, logger: JsonLogger) -> None:
        self.backend = backend
        self.logger = logger
        self._queue: Optional[asyncio.Queue[Optional[Tuple[StoreCommand, asyncio.Future]]]] = None
        self._worker: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "MessageStoreService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run(self._queue))

    async def stop(self) -> None:
        """Drain queued commands and stop the worker."""

        if self._worker is None or self._queue is None:
            return
        await self._queue.put(None)
        await self._worker
        self._worker = None
        self._queue = None

    async def drain(self) -> None:
        """Wait until every queued command has been executed."""

        if self._queue is not None:
            await self._queue.join()

    def submit(self, command: StoreCommand) -> asyncio.Future:
        """Queue ``command`` and return the future carrying its reply.

        Raises:
          RuntimeError: When the service has not been started.
        """

        if self._queue is None:
            raise RuntimeError("message store service is not running")
        future = asyncio.get_running_loop().create_future()
        future.add_done_callback(lambda done: self._report(command, done))
        self._queue.put_nowait((command, future))
        return future

    async def _run(self, queue: asyncio.Queue) -> None:
        while True:
            item = await queue.get()
            try:
                if item is None:
                    return
                command, future = item
                if future.cancelled():
                    continue
                try:
                    result = await asyncio.to_thread(execute, command, backend=self.backend)
                except Exception as exc:
                    if not future.cancelled():
                        future.set_exception(exc)
                else:
                    if not future.cancelled():
                        future.set_result(result)
            finally:
                queue.task_done()

    def _report(self, command: StoreCommand, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self.logger.warning("store_command_failed", error=str(exc), **command.describe())
        else:
            self.logger.debug("store_command_done", **command.describe())

    def compose_request(
        self, compose_type: ComposeType, decrypt: bool, original_id: Optional[str] = None
    ) -> asyncio.Future:
        return self.submit(StoreCommand("compose", (compose_type.value, decrypt, original_id)))

    def add(self, path: str) -> asyncio.Future:
        return self.submit(StoreCommand("add", (path,)))

    def remove(self, docid: str) -> asyncio.Future:
        return self.submit(StoreCommand("remove", (docid,)))

    def move(self, docid: str, folder: Optional[str] = None, delta: Optional[FlagDelta] = None) -> asyncio.Future:
        return self.submit(StoreCommand("move", (docid, folder, delta)))

    def mkdir(self, folder: str) -> asyncio.Future:
        return self.submit(StoreCommand("mkdir", (folder,)))

    def sent(self, path: str) -> asyncio.Future:
        return self.submit(StoreCommand("sent", (path,)))
