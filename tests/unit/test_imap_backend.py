"""
Module: tests/unit/test_imap_backend.py

What:
    Validate the IMAP store backend against the in-memory fake: bootstrap of
    originals, indexing of spool files, flag deltas, draft moves, idempotent
    folder creation and sent acknowledgements.

Why:
    The backend translates engine commands into UID-mode IMAP operations;
    mistakes here mis-flag or lose the user's mail.

How:
    Use the ``imap_store`` fixture, which monkeypatches ``IMAPClient`` with
    :class:`FakeImapBackend`, and write spool files under ``tmp_path``.
"""

import asyncio
from email.message import EmailMessage

import pytest

from mailcompose.config import ComposeSettings, get_runtime_config
from mailcompose.core.message import ComposeType, Flag
from mailcompose.core.references import FlagDelta
from mailcompose.core.session import ComposeRequest, ComposeSession, SessionState
from mailcompose.store.imap_backend import ImapConfig, engine_flags, imap_flags
from mailcompose.store.service import MessageStoreService


def _raw(message_id, subject="Hello"):
    message = EmailMessage()
    message["From"] = "Bob <bob@example.org>"
    message["To"] = "alice@work.example"
    message["Subject"] = subject
    message["Message-ID"] = f"<{message_id}>"
    message.set_content("Hi Alice,\nsee you.\n")
    return bytes(message)


def _spool_file(store, folder, name, raw):
    directory = store.config.spool_dir / folder
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(raw)
    return path


def test_compose_bootstraps_original_with_flags(imap_store):
    store, backend = imap_store
    backend.append("INBOX", _raw("m1@h"), flags=(b"\\Seen",))

    bootstrap = store.compose(ComposeType.REPLY, True, "m1@h")

    assert bootstrap.compose_type is ComposeType.REPLY
    assert bootstrap.decrypted is False
    original = bootstrap.original
    assert original.message_id == "m1@h"
    assert original.folder == "INBOX"
    assert original.flags == {Flag.SEEN}
    assert original.header("subject") == "Hello"
    assert "see you" in original.body


def test_compose_new_needs_no_lookup(imap_store):
    store, _backend = imap_store
    assert store.compose(ComposeType.NEW, False, None).original is None


def test_compose_unknown_original_raises_lookup_error(imap_store):
    store, _backend = imap_store
    with pytest.raises(LookupError):
        store.compose(ComposeType.FORWARD, False, "missing@h")


def test_add_appends_spool_file_to_its_folder(imap_store):
    store, backend = imap_store
    path = _spool_file(store, "work/Sent", "copy.eml", _raw("s1@h"))

    assert store.add(str(path)) == "s1@h"

    record = backend.find("s1@h")
    assert record.mailbox == "work/Sent"
    assert b"\\Seen" in record.flags
    assert "work/Sent" in backend.created


def test_add_rejects_files_outside_the_spool(imap_store, tmp_path):
    store, _backend = imap_store
    outside = tmp_path / "elsewhere.eml"
    outside.write_bytes(_raw("x@h"))
    with pytest.raises(ValueError):
        store.add(str(outside))


def test_move_applies_flag_delta_without_moving(imap_store):
    store, backend = imap_store
    backend.append("INBOX", _raw("m1@h"))
    delta = FlagDelta(added=frozenset({Flag.REPLIED, Flag.SEEN}))

    assert store.move("m1@h", None, delta) is None

    record = backend.find("m1@h")
    assert record.mailbox == "INBOX"
    assert record.flags == {b"\\Answered", b"\\Seen"}


def test_move_relocates_draft_and_spool_file(imap_store):
    store, backend = imap_store
    path = _spool_file(store, "Drafts", "draft.eml", _raw("d1@h"))
    store.add(str(path))

    new_path = store.move("d1@h", "/work/Drafts", None)

    assert backend.find("d1@h").mailbox == "work/Drafts"
    assert new_path == str(store.config.spool_dir / "work" / "Drafts" / "draft.eml")
    assert not path.exists()


def test_mkdir_is_idempotent(imap_store):
    store, backend = imap_store
    store.mkdir("/Archive")
    store.mkdir("/Archive")
    store.mkdir("Sent")
    assert backend.created == ["Archive"]


def test_sent_acknowledges_and_remove_expunges(imap_store):
    store, backend = imap_store
    path = _spool_file(store, "Drafts", "draft.eml", _raw("d2@h"))

    receipt = store.sent(str(path))
    assert receipt.docid == "d2@h"
    assert backend.find("d2@h") is not None

    store.remove(receipt.docid)
    assert backend.find("d2@h") is None
    assert backend.expunged == 1


def test_remove_unknown_message_raises(imap_store):
    store, _backend = imap_store
    with pytest.raises(LookupError):
        store.remove("ghost@h")


def test_flag_mapping_round_trip():
    flags = {Flag.REPLIED, Flag.PASSED, Flag.ENCRYPTED}
    assert imap_flags(flags) == [b"$Forwarded", b"\\Answered"]
    assert engine_flags([b"\\ANSWERED", "$Forwarded", b"\\Recent"]) == {Flag.REPLIED, Flag.PASSED}


def test_config_from_runtime_reads_password_from_environment(monkeypatch, tmp_path):
    from mailcompose.config.loader import load_runtime_config

    path = tmp_path / "config.yaml"
    path.write_text(
        "paths:\n  spool_dir: /srv/spool\n"
        "imap:\n  host: h\n  username: u\n  password_env: TEST_IMAP_PASSWORD\n"
    )
    load_runtime_config(path, reload=True)
    monkeypatch.setenv("TEST_IMAP_PASSWORD", "from-env")

    config = ImapConfig.from_runtime()
    assert config.password == "from-env"
    assert str(config.spool_dir) == "/srv/spool"
    assert config.folders == ["INBOX", "Sent", "Drafts"]
    assert config.draft_folders == ["Drafts"]


def test_remove_keeps_filed_copy_sharing_the_draft_identifier(imap_store):
    store, backend = imap_store
    raw = _raw("d3@h")
    draft = _spool_file(store, "Drafts", "draft.eml", b"X-Mailcompose-Draft: yes\n" + raw)
    store.add(str(draft))
    store.add(str(_spool_file(store, "Sent", "copy.eml", raw)))

    receipt = store.sent(str(draft))
    store.remove(receipt.docid)

    assert [r.message_id for r in backend.mailboxes["Sent"].values()] == ["d3@h"]
    assert backend.mailboxes["Drafts"] == {}


def test_move_finds_draft_in_configured_context_folder(imap_store):
    store, backend = imap_store
    store.config.draft_folders.append("work/Drafts")
    store.mkdir("/work/Drafts")
    backend.append("work/Drafts", _raw("d4@h"), flags=(b"\\Draft",))

    store.move("d4@h", "/home/Drafts", None)

    assert backend.find("d4@h").mailbox == "home/Drafts"


def test_flag_update_ignores_drafts_folders(imap_store):
    store, backend = imap_store
    store.config.draft_folders.append("work/Drafts")
    store.mkdir("/work/Drafts")
    backend.append("work/Drafts", _raw("d5@h"))

    with pytest.raises(LookupError):
        store.move("d5@h", None, FlagDelta(added=frozenset({Flag.SEEN})))


def _run_session(store, settings, editor, logger, body):
    async def scenario():
        async with MessageStoreService(store, logger=logger) as service:
            session = await ComposeSession.start(
                ComposeRequest(ComposeType.NEW), settings=settings, editor=editor, store=service, logger=logger
            )
            await body(session)
            await service.drain()
            return session

    return asyncio.run(scenario())


def _ids(backend, mailbox):
    return [record.message_id for record in backend.mailboxes.get(mailbox, {}).values()]


def test_saved_draft_is_replaced_by_sent_copy(imap_store, editor, logger):
    """
    What:
        Save a draft, send it and check the mailboxes of the IMAP server.

    Why:
        The filed copy in Sent and the draft share one Message-ID; removing
        the draft after sending must leave the filed copy in place.
    """
    store, backend = imap_store

    async def body(session):
        session.save_draft()
        await session.send()

    session = _run_session(store, ComposeSettings(), editor, logger, body)

    assert session.state is SessionState.CLOSED
    assert _ids(backend, "Sent") == [session.docid]
    assert _ids(backend, "Drafts") == []


def test_context_switch_moves_saved_draft_on_server(imap_store, editor, logger):
    store, backend = imap_store
    settings = ComposeSettings.from_config(get_runtime_config())

    async def body(session):
        session.save_draft()
        await session.switch_context(settings.registry().get("private"))
        await session.send()

    session = _run_session(store, settings, editor, logger, body)

    assert session.state is SessionState.CLOSED
    assert _ids(backend, "work/Drafts") == []
    assert _ids(backend, "home/Drafts") == []
    assert _ids(backend, "home/Sent") == [session.docid]
    assert not list((store.config.spool_dir / "work" / "Drafts").glob("*.eml"))


def test_config_from_runtime_collects_context_drafts_folders():
    config = ImapConfig.from_runtime()
    assert config.draft_folders == ["Drafts", "work/Drafts", "home/Drafts"]
