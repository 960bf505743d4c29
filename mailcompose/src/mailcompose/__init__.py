"""
Module: mailcompose.__init__

What:
  Aggregate package exports for the mailcompose draft decision engine and
  expose the primary namespace segments (configuration, core decisions, the
  editor surface, the message store and utilities).

Why:
  Centralising the exports keeps entry points stable while the internal layout
  evolves. Importers rely on these names to build CLI commands, load
  configuration and assemble compose sessions without touching private
  modules.

Interfaces:
  - config: Configuration schema, loaders and runtime settings.
  - core: Policy, disposition, reference and context resolvers plus the
    compose session.
  - editor: Editor protocol and the plain-text draft editor.
  - store: Store command protocol, asyncio service and IMAP backend.
  - utils: Shared helpers for logging, MIME handling and identifiers.
"""

__all__ = [
    "config",
    "core",
    "editor",
    "store",
    "utils",
]
