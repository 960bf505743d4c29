"""Expansion of the deprecated reply crypto policy into policy tokens.

What:
  Translate the legacy two-value override (one value for replies to encrypted
  mail, one for replies to plain mail, each ``none``/``sign``/``encrypt``/
  ``sign-and-encrypt``) into the equivalent :class:`CryptoPolicy` tokens.

Why:
  Older configurations still carry the override. Expanding it once, at load
  time, keeps :func:`mailcompose.core.policy.resolve_crypto` free of
  backward-compatibility branches.

Interfaces:
  :func:`expand_legacy_reply_policy`, :func:`merge_policy`.
"""
from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

from ..core.policy import CryptoPolicy
from ..utils.logging import JsonLogger
from .schema import LegacyReplyPolicy


_ACTIONS = {
    "none": (),
    "sign": ("sign",),
    "encrypt": ("encrypt",),
    "sign-and-encrypt": ("sign", "encrypt"),
}


def expand_legacy_reply_policy(legacy: LegacyReplyPolicy) -> FrozenSet[CryptoPolicy]:
    """Return the tokens equivalent to ``legacy``.

    ``encrypted: sign-and-encrypt`` becomes ``SIGN_ENCRYPTED_REPLIES`` and
    ``ENCRYPT_ENCRYPTED_REPLIES``; ``plain: sign`` becomes
    ``SIGN_PLAIN_REPLIES``; ``none`` contributes nothing.
    """

    tokens = set()
    for reply_kind, value in (("encrypted", legacy.encrypted), ("plain", legacy.plain)):
        for action in _ACTIONS[value]:
            tokens.add(CryptoPolicy(f"{action}-{reply_kind}-replies"))
    return frozenset(tokens)


def merge_policy(
    policy: Iterable[CryptoPolicy],
    legacy: Optional[LegacyReplyPolicy],
    *,
    logger: Optional[JsonLogger] = None,
) -> FrozenSet[CryptoPolicy]:
    """Union ``policy`` with the expansion of ``legacy``."""

    merged = frozenset(policy)
    if legacy is None:
        return merged
    extra = expand_legacy_reply_policy(legacy)
    if logger is not None:
        logger.warning(
            "legacy_reply_policy_deprecated",
            encrypted=legacy.encrypted,
            plain=legacy.plain,
            tokens=sorted(token.value for token in extra),
        )
    return merged | extra
