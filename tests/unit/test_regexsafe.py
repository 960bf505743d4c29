"""
Module: tests/unit/test_regexsafe.py

What:
    Validate the regex search helper used by context match clauses.

Why:
    Header text comes from incoming mail; a pathological pattern must not
    freeze context selection, and a broken pattern must fail loudly.
"""

import re

import pytest

from mailcompose.utils import regexsafe


def test_search_matches():
    result = regexsafe.search(r"work\.example$", "alice@work.example")
    assert result.matched
    assert result.match.group(0) == "work.example"
    assert not result.timed_out


def test_exhausted_budget_reports_no_match():
    result = regexsafe.search(r"(a+)+$", "a" * 1000 + "!", timeout_ms=1)
    assert not result.matched
    assert result.timed_out


def test_invalid_pattern_raises():
    with pytest.raises(re.error):
        regexsafe.search("[", "text")
