"""Structured JSON logging for the compose engine.

What:
  Offer a tiny facade over Python streams so every component can emit JSON log
  lines with consistent fields and automatic removal of message content.

Why:
  Best-effort failures (flag propagation, draft removal, folder races) are only
  ever reported through the log, so the log has to be greppable and must never
  leak the text of the mail being composed.

How:
  :class:`JsonLogger` accepts a target stream and a component tag. ``extra``
  dictionaries are scrubbed via a recursive redaction helper before being
  serialised with ``json.dump``.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every record carries ``ts``, ``lvl``, ``msg`` and ``component``.
  - ``subject``, ``body``, ``citation`` and ``preview`` values are replaced with
    ``[redacted]``, also inside nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "citation", "preview"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emit single-line JSON entries that include a timestamp, severity, a
      component tag, and optional supplemental fields.

    Why:
      Centralising structured logging avoids duplicating the redaction logic and
      guarantees a uniform schema that tests can parse.

    How:
      Stores the destination stream and component label, then exposes
      :meth:`log`, :meth:`debug`, :meth:`info`, :meth:`warning` and
      :meth:`error`.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "mailcompose"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Human-readable severity (e.g., ``"info"`` or ``"error"``).
          message: Event name.
          extra: Optional context dictionary that will be redacted recursively.
        """

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    def child(self, component: str) -> "JsonLogger":
        """Return a logger writing to the same stream under ``component``."""

        return JsonLogger(stream=self.stream, component=component)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys masked.

        What:
          Produces a copy of ``data`` where :data:`SENSITIVE_KEYS` are replaced
          with ``[redacted]``.

        How:
          Walks the dictionary, applying the sentinel to known keys and
          recursing into nested dictionaries so the structure is preserved.

        Args:
          data: Arbitrary metadata to sanitise.

        Returns:
          A copy of ``data`` with sensitive values masked.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component`` on ``stdout``."""

    return JsonLogger(component=component)
