"""
Module: tests/unit/test_matching.py

What:
    Validate declarative clause evaluation used by context match predicates.
"""

import pytest

from mailcompose.core.matching import clauses_match, evaluate_condition
from mailcompose.core.message import Flag, Message
from mailcompose.errors import ConfigurationError
from mailcompose.utils.regexsafe import RegexResult

MESSAGE = Message(
    message_id="m@x",
    headers={
        "From": "Bob <bob@lists.example>",
        "To": "alice@work.example",
        "Subject": "[ops] Weekly report",
        "List-Id": "<ops.lists.example>",
    },
    flags={Flag.ENCRYPTED},
    folder="/work/INBOX",
)


def test_any_all_none_combine():
    clauses = {
        "any": [{"to": {"contains": "@work.example"}}, {"to": {"contains": "@home.example"}}],
        "all": [{"subject": {"regex": r"^\[ops\]"}}],
        "none": [{"flag": "draft"}],
    }
    assert clauses_match(clauses, MESSAGE) is True


def test_none_clause_vetoes():
    assert clauses_match({"none": [{"flag": "encrypted"}]}, MESSAGE) is False


def test_empty_clauses_and_missing_message_never_match():
    assert clauses_match({}, MESSAGE) is False
    assert clauses_match({"any": [{"to": "alice@work.example"}]}, None) is False


def test_header_and_folder_conditions():
    assert evaluate_condition({"header": {"name": "List-Id", "contains": "ops.lists"}}, MESSAGE)
    assert evaluate_condition({"folder": {"equals": "/work/INBOX"}}, MESSAGE)
    assert not evaluate_condition({"folder": {"equals": "/work/inbox"}}, MESSAGE)


def test_subject_comparisons_honour_case_sensitivity():
    condition = {"subject": {"contains": "WEEKLY"}}
    assert evaluate_condition(condition, MESSAGE) is True
    assert evaluate_condition(condition, MESSAGE, case_sensitive=True) is False


def test_scalar_payload_means_equals():
    assert evaluate_condition({"to": "ALICE@work.example"}, MESSAGE) is True
    assert evaluate_condition({"cc": "nobody@example"}, MESSAGE) is False


def test_malformed_regex_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        evaluate_condition({"subject": {"regex": "["}}, MESSAGE)


def test_runaway_regex_does_not_match(monkeypatch):
    monkeypatch.setattr(
        "mailcompose.core.matching.regexsafe.search",
        lambda pattern, text, flags=0: RegexResult(matched=False, timed_out=True),
    )
    assert evaluate_condition({"subject": {"regex": "ops"}}, MESSAGE) is False
