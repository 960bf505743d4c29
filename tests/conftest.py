"""Pytest configuration shared by every suite.

What:
  Establish project import paths and apply a canned runtime configuration to
  every test.

Why:
  Tests import the ``mailcompose`` package from the source tree rather than an
  installed wheel, so ``mailcompose/src`` is prepended to ``sys.path``. The
  runtime configuration is cached process-wide; the autouse fixture keeps it
  deterministic between tests.

How:
  Compute the project root relative to this file, inject the source directory
  into ``sys.path`` when present, and define :func:`runtime_config` to manage the
  ``MAILCOMPOSE_CONFIG_PATH`` environment variable while resetting the cache
  before and after each test.

Interfaces:
  :func:`runtime_config` (pytest fixture), :data:`CONFIG_PATH`.
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailcompose" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailcompose.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Point the loader at ``tests/data/config.yaml`` and clear its cache."""

    monkeypatch.setenv("MAILCOMPOSE_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
