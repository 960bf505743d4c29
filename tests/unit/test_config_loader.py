"""
Module: tests/unit/test_config_loader.py

What:
    Validate the configuration loader: discovery through the environment,
    caching, strict schema validation and conversion into compose settings.

Why:
    A partially valid configuration must never reach a compose session. The
    loader is the only gate between operator-edited YAML and the engine.

How:
    Load the canned ``tests/data/config.yaml`` through the environment
    override, then feed malformed payloads through :func:`parse_runtime_config`
    and assert on the raised errors.
"""

import pytest

from mailcompose.config import (
    ComposeSettings,
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    parse_runtime_config,
    reset_runtime_config,
)
from mailcompose.config.schema import RuntimeConfig
from mailcompose.core.contexts import ContextPolicy
from mailcompose.core.disposition import FolderSet, SentBehavior
from mailcompose.core.message import Message
from mailcompose.core.policy import DEFAULT_POLICY


def test_canned_configuration_loads_from_environment():
    """
    What:
        The autouse fixture points ``MAILCOMPOSE_CONFIG_PATH`` at the canned
        file; :func:`get_runtime_config` must resolve and validate it.

    Why:
        Sessions and the CLI rely on the environment override to locate the
        configuration outside the working directory.
    """
    runtime = get_runtime_config()
    assert runtime.imap.host == "imap.example.org"
    assert runtime.compose.context_policy is ContextPolicy.PICK_FIRST
    assert [context.name for context in runtime.compose.contexts] == ["work", "private"]


def test_runtime_config_is_cached_until_reset(tmp_path, monkeypatch):
    first = get_runtime_config()
    assert get_runtime_config() is first

    other = tmp_path / "config.yaml"
    other.write_text("paths:\n  spool_dir: /srv/spool\n")
    monkeypatch.setenv("MAILCOMPOSE_CONFIG_PATH", str(other))
    assert get_runtime_config() is first

    reset_runtime_config()
    assert get_runtime_config().paths.spool_dir == "/srv/spool"


def test_explicit_path_takes_precedence(tmp_path):
    path = tmp_path / "explicit.yaml"
    path.write_text("paths:\n  spool_dir: /explicit\ncompose:\n  sent_behavior: trash\n")
    runtime = load_runtime_config(path, reload=True)
    assert runtime.paths.spool_dir == "/explicit"
    assert runtime.compose.sent_behavior is SentBehavior.TRASH
    assert runtime.imap is None


def test_missing_config_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("MAILCOMPOSE_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    monkeypatch.chdir(tmp_path)
    reset_runtime_config()
    with pytest.raises(RuntimeConfigError):
        load_runtime_config(tmp_path / "also-absent.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "paths: [unbalanced",
        "- just\n- a list\n",
        "paths:\n  spool_dir: /s\nunknown: 1\n",
        "version: 2\npaths:\n  spool_dir: /s\n",
        "paths:\n  spool_dir: /s\ncompose:\n  sent_behavior: archive\n",
        "paths:\n  spool_dir: /s\ncompose:\n  crypto:\n    policy: [sign-everything]\n",
        "paths:\n  spool_dir: /s\ncompose:\n  contexts:\n"
        "    - {name: a, identity: a@x}\n    - {name: a, identity: b@x}\n",
        "paths:\n  spool_dir: /s\ncompose:\n  contexts:\n"
        "    - name: a\n      identity: a@x\n      match:\n        any: [{body: x}]\n",
        "paths:\n  spool_dir: /s\ncompose:\n  contexts:\n"
        "    - name: a\n      identity: a@x\n      match:\n        any: [{subject: {regex: \"[\"}}]\n",
    ],
)
def test_invalid_payloads_raise_config_load_error(text):
    with pytest.raises(ConfigLoadError):
        parse_runtime_config(text)


def test_settings_from_config_builds_runtime_objects():
    settings = ComposeSettings.from_config(get_runtime_config())

    assert settings.policy == DEFAULT_POLICY
    assert settings.sent_behavior is SentBehavior.SENT
    assert settings.default_folders == FolderSet("/Drafts", "/Sent", "/Trash")
    work, private = settings.contexts
    assert work.folders.sent == "/work/Sent"
    assert work.matches(Message(message_id="m@x", headers={"to": "ceo@work.example"}))
    assert not private.matches(Message(message_id="m@x", headers={"to": "ceo@work.example"}))
    assert settings.folders_for(None) is settings.default_folders
    assert settings.folders_for(private).drafts == "/home/Drafts"


def test_defaults_apply_when_compose_section_is_absent():
    settings = ComposeSettings.from_config(RuntimeConfig.minimal())
    assert settings.policy == DEFAULT_POLICY
    assert settings.crypto_method == "pgpmime"
    assert settings.context_policy is ContextPolicy.ASK_IF_NONE
    assert settings.contexts == []
