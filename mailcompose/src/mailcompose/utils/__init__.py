"""Expose the public utility surface for mailcompose.

What:
  Re-export logging and identifier helpers that other packages may import
  without knowing the underlying module layout.

Interfaces:
  ``JsonLogger``, ``get_logger``, ``new_session_id`` and ``new_message_id``.

Invariants & Safety:
  - The module only re-exports side-effect-free callables to keep import order
    predictable.
"""

from .ids import new_message_id, new_session_id
from .logging import JsonLogger, get_logger

__all__ = [
    "JsonLogger",
    "get_logger",
    "new_message_id",
    "new_session_id",
]
