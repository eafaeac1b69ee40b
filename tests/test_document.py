from pathlib import Path

import pytest

from gchat.document import (
    RESPONSE_MARKER,
    USER_PROMPT_MARKER,
    Role,
    commit,
    ensure_chat_file,
    has_pending_user_turn,
    initial_document,
    parse,
    pending_user_turn,
)
from gchat.errors import DocumentError

DOCUMENT = "USER PROMPT:\nHello\n\nGROK RESPONSE:\nHi there\n\nUSER PROMPT:\nHow are you?\n"


def test_parse_splits_turns_in_document_order() -> None:
    turns = parse(DOCUMENT)

    assert [turn.role for turn in turns] == [Role.USER, Role.ASSISTANT, Role.USER]
    assert [turn.body for turn in turns] == ["Hello", "Hi there", "How are you?"]
    assert [turn.ordinal for turn in turns] == [0, 1, 2]
    assert DOCUMENT[turns[2].start :].startswith(USER_PROMPT_MARKER)


def test_parse_empty_document_has_no_turns() -> None:
    assert parse("") == []
    assert not has_pending_user_turn(parse(""))


def test_marker_must_be_a_whole_line() -> None:
    turns = parse("USER PROMPT:\nplease quote USER PROMPT: inline\n  GROK RESPONSE:\n")

    assert len(turns) == 1
    assert "GROK RESPONSE:" in turns[0].body


def test_marker_tolerates_trailing_whitespace_and_crlf() -> None:
    turns = parse("USER PROMPT:  \r\none\r\nGROK RESPONSE:\r\ntwo\r\n")

    assert [turn.role for turn in turns] == [Role.USER, Role.ASSISTANT]
    assert [turn.body for turn in turns] == ["one", "two"]


def test_preamble_without_marker_is_a_user_turn() -> None:
    turns = parse("just a question\n")

    assert len(turns) == 1
    assert turns[0].role is Role.USER
    assert turns[0].start == 0
    assert has_pending_user_turn(turns)


def test_consecutive_user_turns_use_trailing_turn() -> None:
    turns = parse("USER PROMPT:\nfirst\nUSER PROMPT:\nsecond\n")

    assert [turn.body for turn in turns] == ["first", "second"]
    assert pending_user_turn(turns) == turns[-1]


def test_pending_requires_non_blank_trailing_user_turn() -> None:
    assert not has_pending_user_turn(parse("USER PROMPT:\nHi\nGROK RESPONSE:\nHello\n"))
    assert not has_pending_user_turn(parse("USER PROMPT:\nHi\nGROK RESPONSE:\nHello\nUSER PROMPT:\n  \n\n"))
    assert has_pending_user_turn(parse(DOCUMENT))


def test_commit_replaces_trailing_region_only() -> None:
    turns = parse(DOCUMENT)

    updated = commit(DOCUMENT, turns, "How are you?", "Fine, thanks.")

    assert updated == (
        "USER PROMPT:\nHello\n\nGROK RESPONSE:\nHi there\n\n"
        "USER PROMPT:\nHow are you?\n\nGROK RESPONSE:\nFine, thanks.\n\nUSER PROMPT:\n"
    )
    reparsed = parse(updated)
    assert reparsed[-1].role is Role.USER
    assert reparsed[-1].is_blank
    assert not has_pending_user_turn(reparsed)


def test_commit_keeps_appended_user_body_and_response_indentation() -> None:
    text = "USER PROMPT:\nexplain\n"
    updated = commit(text, parse(text), "explain\n@f:main.py\n", "\n    indented code\n\n")

    assert updated == f"{USER_PROMPT_MARKER}\nexplain\n@f:main.py\n\n{RESPONSE_MARKER}\n    indented code\n\n{USER_PROMPT_MARKER}\n"


def test_commit_on_markerless_document() -> None:
    text = "what is 2 + 2?"
    updated = commit(text, parse(text), "what is 2 + 2?", "4")

    assert updated.startswith(f"{USER_PROMPT_MARKER}\nwhat is 2 + 2?")
    assert updated.endswith(f"{USER_PROMPT_MARKER}\n")


def test_commit_without_user_turn_raises() -> None:
    text = "GROK RESPONSE:\norphan\n"
    with pytest.raises(DocumentError):
        commit(text, parse(text), "", "x")


def test_ensure_chat_file_creates_initial_document(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "gchat.md"

    assert ensure_chat_file(path) is True
    assert path.read_text(encoding="utf-8") == initial_document()
    assert ensure_chat_file(path) is False
