"""Chat document model: turn parsing and the single commit path."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import DocumentError

USER_PROMPT_MARKER = "USER PROMPT:"
RESPONSE_MARKER = "GROK RESPONSE:"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


_MARKER_ROLES: dict[str, Role] = {
    USER_PROMPT_MARKER: Role.USER,
    RESPONSE_MARKER: Role.ASSISTANT,
}


@dataclass(frozen=True)
class Turn:
    """One marker-delimited region of the chat document."""

    role: Role
    raw_body: str
    ordinal: int
    start: int = 0

    @property
    def body(self) -> str:
        return self.raw_body.strip()

    @property
    def is_blank(self) -> bool:
        return not self.raw_body.strip()


def parse(text: str) -> list[Turn]:
    """Split document text into turns.

    A marker is a line equal to ``USER PROMPT:`` or ``GROK RESPONSE:`` (trailing
    whitespace ignored). Text before the first marker is kept as a user turn so
    documents without markers are still processable.
    """

    turns: list[Turn] = []
    role: Role | None = None
    start = 0
    body: list[str] = []
    offset = 0

    def flush() -> None:
        raw_body = "".join(body)
        if role is None:
            if raw_body.strip():
                turns.append(Turn(Role.USER, raw_body, len(turns), 0))
            return
        turns.append(Turn(role, raw_body, len(turns), start))

    for line in text.splitlines(keepends=True):
        marker_role = _MARKER_ROLES.get(line.rstrip())
        if marker_role is not None:
            flush()
            role = marker_role
            start = offset
            body = []
        else:
            body.append(line)
        offset += len(line)

    flush()
    return turns


def pending_user_turn(turns: Sequence[Turn]) -> Turn | None:
    """Return the trailing user turn when it carries a prompt."""
    if not turns:
        return None
    last = turns[-1]
    if last.role is not Role.USER or last.is_blank:
        return None
    return last


def has_pending_user_turn(turns: Sequence[Turn]) -> bool:
    return pending_user_turn(turns) is not None


def commit(text: str, turns: Sequence[Turn], user_body: str, response: str) -> str:
    """Rewrite the document from the last user turn onwards.

    The region becomes the user prompt, the response, and a fresh empty user
    section. Everything before the last user turn is kept byte for byte.
    """

    last_user = next((turn for turn in reversed(turns) if turn.role is Role.USER), None)
    if last_user is None:
        raise DocumentError("document has no user turn to answer")

    prefix = text[: last_user.start]
    return (
        f"{prefix}{USER_PROMPT_MARKER}\n{_trim_block(user_body)}\n\n"
        f"{RESPONSE_MARKER}\n{_trim_block(response)}\n\n"
        f"{USER_PROMPT_MARKER}\n"
    )


def initial_document() -> str:
    return f"{USER_PROMPT_MARKER}\n"


def ensure_chat_file(path: Path) -> bool:
    """Create the chat file with an empty user section. Returns True if created."""
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(initial_document(), encoding="utf-8")
    return True


def _trim_block(text: str) -> str:
    # leading indentation on the first line is content (code blocks)
    return text.lstrip("\r\n").rstrip()
