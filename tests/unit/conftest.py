"""Pytest fixtures for unit tests requiring store and editor doubles.

What:
  Ensure ``tests/unit`` is importable and expose fixtures for the IMAP-backed
  store, the draft editor and compose settings.

Why:
  Store and session tests interact with IMAP, the spool directory and the
  configuration extensively. Consistent fixtures keep message flows
  deterministic and free of network access.

How:
  Append the unit directory to ``sys.path`` for local imports, monkeypatch
  ``IMAPClient`` with :class:`FakeImapBackend`, and build editors writing into
  ``tmp_path``.

Interfaces:
  :func:`log_stream`, :func:`logger`, :func:`imap_store`, :func:`editor`,
  :func:`sent_messages`.
"""

import io
import json
import sys
from pathlib import Path

import pytest

from mailcompose.editor.draft import EmailDraftEditor
from mailcompose.store.imap_backend import ImapConfig, ImapMessageStore
from mailcompose.utils.logging import JsonLogger

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeImapBackend


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def logger(log_stream):
    return JsonLogger(stream=log_stream, component="test")


@pytest.fixture
def log_records(log_stream):
    """Return a callable parsing every JSON line written so far."""

    def read():
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line]

    return read


@pytest.fixture
def imap_store(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Yield an :class:`ImapMessageStore` backed by the in-memory fake backend.

    Returns a tuple ``(store, backend)`` so tests can assert on backend state
    (mailboxes, flags) while invoking store commands.
    """

    backend = FakeImapBackend()
    monkeypatch.setattr(
        "mailcompose.store.imap_backend.IMAPClient", lambda host, port, ssl: backend
    )
    config = ImapConfig(
        host="localhost",
        username="user",
        password="pass",
        spool_dir=tmp_path / "spool",
    )
    with ImapMessageStore(config) as store:
        yield store, backend


@pytest.fixture
def sent_messages():
    return []


@pytest.fixture
def editor(tmp_path: Path, logger, sent_messages):
    """Return an :class:`EmailDraftEditor` spooling into ``tmp_path``."""

    return EmailDraftEditor(tmp_path / "spool", transport=sent_messages.append, logger=logger)
