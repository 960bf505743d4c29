"""Regular expression search with a soft timeout.

What:
  Offer a thin wrapper around :func:`re.search` that bounds execution time and
  returns a structured result.

Why:
  Context match clauses are written by the operator but evaluated against
  header text of incoming mail. Python's backtracking engine can hang on a
  crafted header, and a compose session must not freeze while choosing an
  identity.

How:
  Run the compiled pattern inside a daemon thread, join with a millisecond
  timeout and report a negative result when the deadline passes. Errors raised
  by the search itself are re-raised in the caller.

Interfaces:
  :class:`RegexResult`, :func:`search`.
"""
from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Optional


@dataclass
class RegexResult:
    """Outcome of :func:`search`; ``timed_out`` marks an abandoned search."""

    matched: bool
    match: Optional[re.Match[str]] = None
    timed_out: bool = False


def search(pattern: str, text: str, *, timeout_ms: int = 50, flags: int = 0) -> RegexResult:
    """Search ``text`` with ``pattern`` within ``timeout_ms`` milliseconds.

    Args:
      pattern: Regular expression pattern string.
      text: Text to scan.
      timeout_ms: Budget before the search is abandoned.
      flags: :mod:`re` compilation flags.

    Returns:
      :class:`RegexResult`; ``matched`` is ``False`` when the budget ran out.

    Raises:
      re.error: When ``pattern`` does not compile.
    """

    compiled = re.compile(pattern, flags)
    if timeout_ms <= 1:
        return RegexResult(matched=False, timed_out=True)
    results: dict[str, RegexResult] = {}
    errors: dict[str, Exception] = {}

    def _target() -> None:
        try:
            match = compiled.search(text)
            results["result"] = RegexResult(matched=match is not None, match=match)
        except Exception as exc:  # pragma: no cover - re-raised below
            errors["error"] = exc

    thread = threading.Thread(target=_target, daemon=True)
    thread.start()
    thread.join(timeout_ms / 1000)
    if thread.is_alive():
        return RegexResult(matched=False, timed_out=True)
    if "error" in errors:
        raise errors["error"]
    return results.get("result", RegexResult(matched=False))
