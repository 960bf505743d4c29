"""Generate session identifiers and draft message identifiers.

What:
  Provide helpers for creating unique compose-session IDs and RFC 5322
  ``Message-ID`` values for new drafts.

Why:
  Session IDs correlate every log line emitted while a draft is alive; message
  IDs have to be unique before the first save so threading headers of later
  replies resolve to this draft.

How:
  Combine timezone-aware timestamps with random suffixes for session IDs and
  delegate message IDs to :func:`email.utils.make_msgid`.

Interfaces:
  :func:`new_session_id`, :func:`new_message_id`.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone
from email.utils import make_msgid
from typing import Optional


def new_session_id() -> str:
    """Return a sortable, unique identifier for a compose session.

    Returns:
      Identifier such as ``2024-01-01T00:00:00+00:00#1a2b3c``.
    """

    timestamp = datetime.now(timezone.utc).isoformat()
    suffix = secrets.token_hex(3)
    return f"{timestamp}#{suffix}"


def new_message_id(identity: Optional[str] = None) -> str:
    """Return a bracketed ``Message-ID`` whose domain follows ``identity``.

    Args:
      identity: From address (``Name <user@host>`` or ``user@host``). When it
        has no domain the local host name is used.
    """

    domain = None
    if identity and "@" in identity:
        domain = identity.rsplit("@", 1)[1].strip(" >") or None
    return make_msgid(domain=domain)
