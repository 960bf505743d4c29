"""Aggregated exports for the compose decision core.

What:
  Provide a light-weight package facade exposing the resolvers and the compose
  session while deferring imports until they are needed.

Why:
  The session pulls in the configuration layer (pydantic, PyYAML). Lazy access
  keeps the pure resolvers importable from the configuration schema without
  creating an import cycle, and keeps CLI start-up cheap.

How:
  Defines ``__all__`` explicitly for static analyzers and implements
  ``__getattr__`` to import submodules on demand.

Invariants & Safety:
  - ``__getattr__`` only exposes names from ``__all__``; unexpected attributes
    raise :class:`AttributeError`.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ComposeType",
    "Flag",
    "Message",
    "CryptoDecision",
    "CryptoPolicy",
    "resolve_crypto",
    "SentBehavior",
    "FolderSet",
    "resolve_disposition",
    "ReferenceLink",
    "FlagDelta",
    "infer_reference",
    "Context",
    "ContextPolicy",
    "ContextRegistry",
    "determine_context",
    "ComposeRequest",
    "ComposeSession",
    "SessionState",
]


def __getattr__(name: str) -> Any:
    """Resolve attributes lazily from the module owning them.

    Raises:
      AttributeError: If ``name`` is not part of the public surface.
    """

    if name in {"ComposeType", "Flag", "Message"}:
        from . import message

        return getattr(message, name)
    if name in {"CryptoDecision", "CryptoPolicy", "resolve_crypto"}:
        from . import policy

        return getattr(policy, name)
    if name in {"SentBehavior", "FolderSet", "resolve_disposition"}:
        from . import disposition

        return getattr(disposition, name)
    if name in {"ReferenceLink", "FlagDelta", "infer_reference"}:
        from . import references

        return getattr(references, name)
    if name in {"Context", "ContextPolicy", "ContextRegistry", "determine_context"}:
        from . import contexts

        return getattr(contexts, name)
    if name in {"ComposeRequest", "ComposeSession", "SessionState"}:
        from . import session

        return getattr(session, name)
    raise AttributeError(name)
