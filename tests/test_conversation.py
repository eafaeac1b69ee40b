from pathlib import Path

from gchat.conversation import Message, build_conversation
from gchat.document import Role, parse
from gchat.placeholders import level_to_tokens


def _build(text: str, root: Path, **kwargs):
    options = {"default_level": 3, "default_temperature": 1.0, **kwargs}
    return build_conversation(parse(text), root, **options)


def test_assistant_turns_pass_through_without_expansion(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello", encoding="utf-8")
    text = "USER PROMPT:\nhi\n\nGROK RESPONSE:\nuse @f:notes.txt yourself @t:L5\n\nUSER PROMPT:\nok\n"

    conversation = _build(text, tmp_path)

    assert conversation.messages == (
        Message(Role.USER, "hi"),
        Message(Role.ASSISTANT, "use @f:notes.txt yourself @t:L5"),
        Message(Role.USER, "ok"),
    )
    assert conversation.level == 3


def test_last_override_wins_across_history(tmp_path: Path) -> None:
    text = (
        "USER PROMPT:\none @t:L2\n\nGROK RESPONSE:\nr1\n\n"
        "USER PROMPT:\ntwo\n\nGROK RESPONSE:\nr2\n\n"
        "USER PROMPT:\nthree @t:L4\n"
    )

    conversation = _build(text, tmp_path)

    assert conversation.level == 4
    assert level_to_tokens(conversation.level) == 8192


def test_old_override_stays_in_force_until_replaced(tmp_path: Path) -> None:
    text = (
        "USER PROMPT:\none @t:L1 @p:0.3\n\nGROK RESPONSE:\nr1\n\n"
        "USER PROMPT:\ntwo\n\nGROK RESPONSE:\nr2\n\n"
        "USER PROMPT:\nthree\n"
    )

    conversation = _build(text, tmp_path)

    assert conversation.level == 1
    assert conversation.temperature == 0.3


def test_defaults_apply_without_overrides(tmp_path: Path) -> None:
    conversation = _build("USER PROMPT:\nhello\n", tmp_path, default_level=2, default_temperature=0.7)

    assert conversation.level == 2
    assert conversation.temperature == 0.7


def test_end_to_end_document_expansion(tmp_path: Path) -> None:
    (tmp_path / "notes.txt").write_text("hello", encoding="utf-8")
    text = "USER PROMPT:\nSummarize @f:notes.txt @t:L1\n\nGROK RESPONSE:\n...\n\nUSER PROMPT:\nContinue.\n"

    conversation = _build(text, tmp_path)

    assert conversation.messages[0] == Message(Role.USER, "Summarize Contents of notes.txt:\n```\nhello\n```")
    assert conversation.messages[-1] == Message(Role.USER, "Continue.")
    assert "@t:L1" not in conversation.messages[0].content
    assert level_to_tokens(conversation.level) == 1024


def test_system_prompt_and_blank_turns(tmp_path: Path) -> None:
    text = "USER PROMPT:\nfirst\nGROK RESPONSE:\n\nUSER PROMPT:\nsecond\n"

    conversation = _build(text, tmp_path, system_prompt="  Be brief.  ")

    assert [message.role for message in conversation.messages] == [Role.SYSTEM, Role.USER, Role.USER]
    assert conversation.messages[0].content == "Be brief."
    assert conversation.messages[0].as_dict() == {"role": "system", "content": "Be brief."}


def test_expansion_warnings_carry_turn_ordinal(tmp_path: Path) -> None:
    conversation = _build("USER PROMPT:\nread @f:missing.txt\n", tmp_path)

    assert len(conversation.warnings) == 1
    assert conversation.warnings[0].startswith("turn 0:")
    assert conversation.messages[0].content == "read @f:missing.txt"
