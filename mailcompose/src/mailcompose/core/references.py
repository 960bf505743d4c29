"""Infer the prior message a draft refers to and update its flags.

What:
  Parse a sent draft's threading headers to find the message it replied to or
  forwarded, and ask the message store to mark that message accordingly.

Why:
  The reference is derived, never stored: the draft's own headers are the only
  record of which message it answered. ``In-Reply-To`` is authoritative for
  replies; ``References`` without ``In-Reply-To`` marks a forward and points at
  the root of the referenced chain.

How:
  :func:`extract_message_ids` pulls bracketed identifiers in document order.
  :func:`infer_reference` applies the precedence rule, :func:`flag_delta_for`
  maps the link kind to a flag delta that always bundles ``Seen``, and
  :func:`propagate_reference` issues the fire-and-forget ``move`` command.

Interfaces:
  :class:`LinkKind`, :class:`ReferenceLink`, :class:`FlagDelta`,
  :func:`extract_message_ids`, :func:`infer_reference`, :func:`flag_delta_for`,
  :func:`propagate_reference`.

Invariants & Safety:
  - Flag propagation failures are logged and never raised; mail that has been
    sent is never reported as failed because of bookkeeping downstream.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Mapping, Optional

from ..utils.logging import JsonLogger
from .message import Flag


_MESSAGE_ID_RE = re.compile(r"<([^<>]+)>")

_FLAG_LETTERS = {
    Flag.DRAFT: "D",
    Flag.FLAGGED: "F",
    Flag.NEW: "N",
    Flag.PASSED: "P",
    Flag.REPLIED: "R",
    Flag.SEEN: "S",
    Flag.TRASHED: "T",
}


class LinkKind(str, Enum):
    REPLY = "reply"
    FORWARD = "forward"


@dataclass(frozen=True)
class ReferenceLink:
    """Relationship between a sent draft and a prior message."""

    kind: LinkKind
    target: str


@dataclass(frozen=True)
class FlagDelta:
    """Flags to add to and remove from a stored message."""

    added: FrozenSet[Flag] = field(default_factory=frozenset)
    removed: FrozenSet[Flag] = field(default_factory=frozenset)

    def __str__(self) -> str:
        def render(prefix: str, flags: FrozenSet[Flag]) -> str:
            letters = sorted(_FLAG_LETTERS.get(flag, flag.value) for flag in flags)
            return "".join(f"{prefix}{letter}" for letter in letters)

        return render("+", self.added) + render("-", self.removed)

    def apply(self, flags: FrozenSet[Flag]) -> FrozenSet[Flag]:
        return frozenset((set(flags) - self.removed) | self.added)


def _lookup(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def extract_message_ids(value: str) -> List[str]:
    """Return bracket-stripped message identifiers of ``value`` in order."""

    return [match.strip() for match in _MESSAGE_ID_RE.findall(value) if match.strip()]


def infer_reference(headers: Mapping[str, str]) -> Optional[ReferenceLink]:
    """Infer the reply/forward relationship encoded in ``headers``.

    What:
      ``In-Reply-To`` yields a :attr:`LinkKind.REPLY` link to its identifier.
      Otherwise the first identifier of ``References`` yields a
      :attr:`LinkKind.FORWARD` link.

    Why:
      A forward carries no ``In-Reply-To``; forward drafts list the forwarded
      message first in ``References``, so the first identifier is taken rather
      than the most recent one.

    Args:
      headers: Draft headers; key case is ignored.

    Returns:
      The :class:`ReferenceLink`, or ``None`` when neither header yields an
      identifier.
    """

    in_reply_to = _lookup(headers, "in-reply-to")
    if in_reply_to:
        match = _MESSAGE_ID_RE.search(in_reply_to)
        target = match.group(1).strip() if match else in_reply_to.strip()
        if target:
            return ReferenceLink(LinkKind.REPLY, target)
    references = _lookup(headers, "references")
    if references:
        ids = extract_message_ids(references)
        if ids:
            return ReferenceLink(LinkKind.FORWARD, ids[0])
    return None


def flag_delta_for(link: ReferenceLink) -> FlagDelta:
    """Return the flag delta requested on the target of ``link``."""

    if link.kind is LinkKind.REPLY:
        return FlagDelta(added=frozenset({Flag.REPLIED, Flag.SEEN}))
    return FlagDelta(added=frozenset({Flag.PASSED, Flag.SEEN}))


def propagate_reference(store, link: Optional[ReferenceLink], logger: JsonLogger) -> bool:
    """Ask ``store`` to flag the target of ``link``.

    The command is fire-and-forget: an immediate failure to issue it is logged
    as ``parent_flag_failed``; failures reported later by the store are logged
    by the store service itself.

    Returns:
      ``True`` when a command was issued.
    """

    if link is None:
        return False
    delta = flag_delta_for(link)
    try:
        store.move(link.target, None, delta)
    except Exception as exc:
        logger.warning(
            "parent_flag_failed",
            target=link.target,
            kind=link.kind.value,
            error=str(exc),
        )
        return False
    logger.info("parent_flag_requested", target=link.target, kind=link.kind.value, delta=str(delta))
    return True
