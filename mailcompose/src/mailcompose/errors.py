"""Exception hierarchy shared by the compose engine.

What:
  Name the failure categories the engine can surface to an operator:
  configuration mistakes, invalid compose requests, missing source messages,
  and store commands whose replies are required.

Why:
  Orchestration code must distinguish fatal failures (reported to the operator,
  no state mutated) from best-effort bookkeeping failures (logged only). Giving
  each category its own type lets callers catch exactly what they can handle.

How:
  A single :class:`ComposeError` base with narrow subclasses. Best-effort
  failures and operator aborts intentionally have no exception type: the first
  are logged where they happen and the second is a normal session outcome.

Interfaces:
  :class:`ComposeError`, :class:`ConfigurationError`, :class:`InvalidState`,
  :class:`MissingSource`, :class:`StoreError`.
"""
from __future__ import annotations


class ComposeError(Exception):
    """Base class for errors raised by the compose engine."""


class ConfigurationError(ComposeError):
    """A configured value cannot be honoured.

    Raised for unsupported sent-message behaviours and for context policies
    that require a prompt when the caller cannot prompt.
    """


class InvalidState(ComposeError):
    """A request or transition is not allowed in the current state.

    Covers editing a message that is not a draft, attaching an original to a
    new message, and session transitions attempted from the wrong state.
    """


class MissingSource(ComposeError):
    """A reply, forward, resend or edit was requested without an original."""


class StoreError(ComposeError):
    """A message-store command failed and its reply was required."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"store command {command!r} failed: {reason}")
        self.command = command
        self.reason = reason
