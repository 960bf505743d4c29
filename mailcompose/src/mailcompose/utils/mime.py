"""MIME parsing helpers turning stored mail into engine snapshots.

What:
  Provide defensive parsing utilities that turn raw RFC822 payloads into
  :class:`email.message.EmailMessage` objects, lower-case header dictionaries,
  bounded plain-text bodies and finally :class:`~mailcompose.core.message.Message`
  snapshots.

Why:
  The store backend and the CLI read messages written by arbitrary clients. The
  helpers normalise inputs so the resolvers operate deterministically without
  risking oversized payloads or encoding errors.

How:
  Use the ``email`` package's :class:`~email.parser.BytesParser` with the default
  policy, extract a text body by walking MIME parts, truncate the UTF-8 content
  when it exceeds :data:`MAX_BODY_BYTES`, and derive content-based flags
  (``multipart/encrypted`` and ``multipart/signed``).

Interfaces:
  :func:`parse_message`, :func:`snapshot_from_bytes`.

Invariants & Safety:
  - Body text is always returned as UTF-8 decoded with ``errors="ignore"``.
  - Truncation is performed on encoded bytes to avoid splitting code points.
"""
from __future__ import annotations

from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Dict, Iterable, Optional, Tuple

from ..core.message import Flag, Message


MAX_BODY_BYTES = 1_000_000
"""Soft upper bound for decoded body size in bytes."""


def parse_message(raw: bytes) -> Tuple[EmailMessage, Dict[str, str], str]:
    """Parse a raw message into canonical structures.

    Args:
      raw: Raw message bytes.

    Returns:
      Tuple containing the parsed :class:`EmailMessage`, a ``dict`` of header
      values keyed by lowercase names, and the truncated UTF-8 text body.
    """

    parser = BytesParser(policy=policy.default)
    message = parser.parsebytes(raw)
    headers = {k.lower(): str(v) for k, v in message.items()}
    body_text = _extract_body_text(message)
    return message, headers, body_text


def content_flags(message: EmailMessage) -> set[Flag]:
    """Return flags implied by the top-level content type of ``message``."""

    content_type = message.get_content_type()
    if content_type == "multipart/encrypted":
        return {Flag.ENCRYPTED}
    if content_type == "multipart/signed":
        return {Flag.SIGNED}
    return set()


def snapshot_from_bytes(
    raw: bytes,
    *,
    path: Optional[str] = None,
    folder: Optional[str] = None,
    flags: Iterable[Flag] = (),
) -> Message:
    """Build a :class:`Message` snapshot from raw RFC822 bytes.

    What:
      Parse ``raw`` and combine its headers, body and content-derived flags
      with the storage metadata supplied by the caller.

    Why:
      Both the IMAP backend and the CLI need the same snapshot shape; parsing in
      one place keeps flag derivation consistent.

    Args:
      raw: Message bytes.
      path: Storage location, when the message lives in a file.
      folder: Folder reference, when known.
      flags: Flags reported by the store (e.g. IMAP system flags).

    Returns:
      Snapshot whose ``message_id`` falls back to an empty string when the
      message carries no ``Message-ID`` header.
    """

    message, headers, body = parse_message(raw)
    all_flags = set(flags) | content_flags(message)
    return Message(
        message_id=headers.get("message-id", ""),
        headers=headers,
        flags=all_flags,
        path=path,
        folder=folder,
        body=body,
    )


def _extract_body_text(message: EmailMessage) -> str:
    """Select the first textual part of a MIME tree.

    Walks multipart messages depth-first while skipping container parts and
    returns the first ``text/*`` leaf, truncated via :func:`_truncate`.
    Encrypted payloads have no readable leaf and yield an empty string.
    """
    if message.is_multipart():
        for part in message.walk():
            if part.is_multipart():
                continue
            content_type = part.get_content_type()
            if content_type.startswith("text/"):
                payload = part.get_content()
                if isinstance(payload, bytes):
                    payload = payload.decode(part.get_content_charset("utf-8"), errors="ignore")
                return _truncate(payload)
        return ""
    payload = message.get_content()
    if isinstance(payload, bytes):
        payload = payload.decode(message.get_content_charset("utf-8"), errors="ignore")
    return _truncate(payload)


def _truncate(text: str) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= MAX_BODY_BYTES:
        return text
    truncated = encoded[:MAX_BODY_BYTES]
    return truncated.decode("utf-8", errors="ignore")
