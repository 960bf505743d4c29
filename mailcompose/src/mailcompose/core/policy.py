"""Crypto policy resolution for drafts.

What:
  Decide whether a draft must be signed and/or encrypted from its compose type,
  the encryption state of the message it answers, and the configured policy
  token set; then request the matching secure operation from the editor.

Why:
  Operators express crypto preferences as overlapping tokens (``sign all
  messages`` next to ``sign plain replies``). Treating them as a flat set with
  OR semantics keeps redundancy legal and the resolution order-free.

How:
  Each flag is the disjunction of independent clauses, one per token. Sign and
  encrypt share the same clause table through :func:`_wanted`. Legacy reply
  policies are expanded into tokens at configuration-load time
  (:mod:`mailcompose.config.legacy`) and never reach this module.

Interfaces:
  :class:`CryptoPolicy`, :class:`CryptoDecision`, :data:`DEFAULT_POLICY`,
  :func:`resolve_crypto`, :func:`apply_crypto`.

Invariants & Safety:
  - :func:`resolve_crypto` is pure and never raises.
  - A sign+encrypt decision is applied as one combined operation, never as two
    sequential ones.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Optional

from .message import ComposeType


class CryptoPolicy(str, Enum):
    """Policy tokens; the value is the configuration spelling."""

    SIGN_ALL_MESSAGES = "sign-all-messages"
    ENCRYPT_ALL_MESSAGES = "encrypt-all-messages"
    SIGN_NEW_MESSAGES = "sign-new-messages"
    ENCRYPT_NEW_MESSAGES = "encrypt-new-messages"
    SIGN_FORWARDED_MESSAGES = "sign-forwarded-messages"
    ENCRYPT_FORWARDED_MESSAGES = "encrypt-forwarded-messages"
    SIGN_EDITED_MESSAGES = "sign-edited-messages"
    ENCRYPT_EDITED_MESSAGES = "encrypt-edited-messages"
    SIGN_ALL_REPLIES = "sign-all-replies"
    ENCRYPT_ALL_REPLIES = "encrypt-all-replies"
    SIGN_PLAIN_REPLIES = "sign-plain-replies"
    ENCRYPT_PLAIN_REPLIES = "encrypt-plain-replies"
    SIGN_ENCRYPTED_REPLIES = "sign-encrypted-replies"
    ENCRYPT_ENCRYPTED_REPLIES = "encrypt-encrypted-replies"


DEFAULT_POLICY = frozenset(
    {CryptoPolicy.ENCRYPT_ENCRYPTED_REPLIES, CryptoPolicy.SIGN_ENCRYPTED_REPLIES}
)


@dataclass(frozen=True)
class CryptoDecision:
    """Outcome of crypto resolution for one draft."""

    sign: bool = False
    encrypt: bool = False

    @property
    def mode(self) -> Optional[str]:
        """Secure-operation mode understood by the editor, or ``None``."""

        if self.sign and self.encrypt:
            return "signencrypt"
        if self.sign:
            return "sign"
        if self.encrypt:
            return "encrypt"
        return None


def _wanted(
    action: str,
    compose_type: ComposeType,
    original_encrypted: bool,
    policy: AbstractSet[CryptoPolicy],
) -> bool:
    def has(suffix: str) -> bool:
        return CryptoPolicy(f"{action}-{suffix}") in policy

    if has("all-messages"):
        return True
    if compose_type is ComposeType.NEW:
        return has("new-messages")
    if compose_type is ComposeType.FORWARD:
        return has("forwarded-messages")
    if compose_type is ComposeType.EDIT:
        return has("edited-messages")
    if compose_type is ComposeType.REPLY:
        if has("all-replies"):
            return True
        if original_encrypted:
            return has("encrypted-replies")
        return has("plain-replies")
    return False


def resolve_crypto(
    compose_type: ComposeType,
    original_encrypted: bool,
    policy: AbstractSet[CryptoPolicy],
) -> CryptoDecision:
    """Resolve the sign/encrypt decision for a draft.

    What:
      Evaluate the token clauses for both actions.

    How:
      ``encrypt`` holds when ``ENCRYPT_ALL_MESSAGES`` is present, or the token
      for the compose type is present (``ENCRYPT_NEW_MESSAGES`` for new drafts,
      ``ENCRYPT_FORWARDED_MESSAGES`` for forwards, ``ENCRYPT_EDITED_MESSAGES``
      for edits), or for replies ``ENCRYPT_ALL_REPLIES`` or the plain/encrypted
      reply token matching ``original_encrypted``. ``sign`` is symmetric.
      Resends only honour the ``*_ALL_MESSAGES`` tokens.

    Args:
      compose_type: Kind of draft.
      original_encrypted: Whether the message being answered was encrypted.
      policy: Flat token set; absent tokens simply yield ``False``.

    Returns:
      The :class:`CryptoDecision`.
    """

    return CryptoDecision(
        sign=_wanted("sign", compose_type, original_encrypted, policy),
        encrypt=_wanted("encrypt", compose_type, original_encrypted, policy),
    )


def apply_crypto(editor, handle, decision: CryptoDecision, *, method: str = "pgpmime") -> bool:
    """Request the secure operation matching ``decision`` from ``editor``.

    Returns:
      ``True`` when an operation was requested, ``False`` for a plain draft.
    """

    if decision.mode is None:
        return False
    editor.apply_secure_operation(handle, decision, method=method)
    return True
