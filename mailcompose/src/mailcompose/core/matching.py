"""Declarative predicates over message snapshots.

What:
  Evaluate ``any``/``all``/``none`` clause sets, as written in configuration,
  against the original message of a compose request.

Why:
  Context match predicates have to be expressible in YAML. Reusing one clause
  evaluator keeps case handling and regex semantics identical for every
  context.

How:
  Each condition is a single-entry mapping from a field (``header``, ``from``,
  ``to``, ``cc``, ``subject``, ``folder``, ``flag``) to a payload holding one of
  ``equals``, ``contains`` or ``regex``. Clause results combine as
  ``any ∧ all ∧ ¬none``; empty clauses are neutral.

Interfaces:
  :func:`clauses_match`, :func:`evaluate_condition`.

Invariants & Safety:
  - Without an original message nothing matches.
  - Regex clauses run under a soft timeout; a timed-out search does not match.
  - Address fields are compared case-insensitively regardless of
    ``case_sensitive``.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping, Optional

from ..errors import ConfigurationError
from ..utils import regexsafe
from .message import Message


def clauses_match(clauses: Any, message: Optional[Message], *, case_sensitive: bool = False) -> bool:
    """Return whether ``message`` satisfies ``clauses``.

    Args:
      clauses: Object exposing ``any``, ``all`` and ``none`` condition lists
        (a :class:`~mailcompose.config.schema.ContextMatch` or a mapping).
      message: Original message, or ``None`` for a brand new draft.
      case_sensitive: Whether subject and header comparisons honour case.
    """

    if message is None:
        return False
    any_ = _clause(clauses, "any")
    all_ = _clause(clauses, "all")
    none_ = _clause(clauses, "none")
    if not any_ and not all_ and not none_:
        return False
    result_any = True
    result_all = True
    result_none = True
    if any_:
        result_any = any(evaluate_condition(c, message, case_sensitive=case_sensitive) for c in any_)
    if all_:
        result_all = all(evaluate_condition(c, message, case_sensitive=case_sensitive) for c in all_)
    if none_:
        result_none = not any(
            evaluate_condition(c, message, case_sensitive=case_sensitive) for c in none_
        )
    return result_any and result_all and result_none


def _clause(clauses: Any, name: str) -> Iterable[Mapping[str, Any]]:
    if isinstance(clauses, Mapping):
        return clauses.get(name) or []
    return getattr(clauses, name, None) or []


def evaluate_condition(
    condition: Mapping[str, Any], message: Message, *, case_sensitive: bool = False
) -> bool:
    """Evaluate a single-entry condition mapping against ``message``."""

    field, raw_payload = next(iter(condition.items()))
    payload = _normalize_payload(raw_payload)
    if field == "flag":
        return any(flag.value == str(payload.get("equals", "")).lower() for flag in message.flags)
    if field == "header":
        value = message.header(str(payload["name"]), "") or ""
        return _compare_string(value, payload, case_sensitive=case_sensitive)
    if field == "subject":
        return _compare_string(message.header("subject", "") or "", payload, case_sensitive=case_sensitive)
    if field in {"from", "to", "cc"}:
        return _compare_string(message.header(field, "") or "", payload, case_sensitive=False)
    if field == "folder":
        return _compare_string(message.folder or "", payload, case_sensitive=True)
    return False


def _compare_string(value: str, payload: Dict[str, Any], *, case_sensitive: bool) -> bool:
    value_cmp = value if case_sensitive else value.lower()
    if "equals" in payload:
        target = str(payload["equals"])
        return value_cmp == (target if case_sensitive else target.lower())
    if "contains" in payload:
        target = str(payload["contains"])
        return (target if case_sensitive else target.lower()) in value_cmp
    if "regex" in payload:
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            return regexsafe.search(str(payload["regex"]), value, flags=flags).matched
        except re.error as exc:
            raise ConfigurationError(f"invalid match regex {payload['regex']!r}: {exc}") from exc
    return False


def _normalize_payload(payload: Any) -> Dict[str, Any]:
    if hasattr(payload, "model_dump"):
        return payload.model_dump()
    if isinstance(payload, dict):
        return payload
    return {"equals": payload}
