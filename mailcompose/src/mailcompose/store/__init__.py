"""Facade for the message-store layer.

What:
  Surface the store command vocabulary, the asyncio
  :class:`~mailcompose.store.service.MessageStoreService` and the IMAP backend.

Why:
  Sessions only need the service; backends only need the command protocol.
  Keeping the import surface minimal lets the layer evolve without sweeping
  refactors.

Interfaces:
  ``ComposeBootstrap``, ``SentReceipt``, ``StoreCommand``, ``SupportsStore``,
  ``MessageStoreService``, ``ImapConfig`` and ``ImapMessageStore``.

Invariants & Safety:
  - All IMAP operations should go through :class:`ImapMessageStore` to inherit
    rate limiting and mailbox guardrails.
"""

from .commands import ComposeBootstrap, SentReceipt, StoreCommand, SupportsStore
from .imap_backend import ImapConfig, ImapMessageStore
from .service import MessageStoreService

__all__ = [
    "ComposeBootstrap",
    "SentReceipt",
    "StoreCommand",
    "SupportsStore",
    "ImapConfig",
    "ImapMessageStore",
    "MessageStoreService",
]
