"""Build the API message list from parsed turns."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from .document import Role, Turn
from .placeholders import Overrides, expand_placeholders


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class Conversation:
    """Messages to send plus the generation parameters in force."""

    messages: tuple[Message, ...]
    level: int
    temperature: float
    warnings: tuple[str, ...] = ()


def build_conversation(
    turns: Sequence[Turn],
    root: Path,
    *,
    default_level: int,
    default_temperature: float,
    system_prompt: str | None = None,
) -> Conversation:
    """Expand user turns and resolve overrides across the whole history.

    The last ``@t``/``@p`` found anywhere in the history wins, even when later
    turns carry no placeholders; kinds never set fall back to the defaults.
    """

    messages: list[Message] = []
    warnings: list[str] = []
    overrides = Overrides()

    if system_prompt and system_prompt.strip():
        messages.append(Message(Role.SYSTEM, system_prompt.strip()))

    for turn in turns:
        if turn.role is not Role.USER:
            if not turn.is_blank:
                messages.append(Message(turn.role, turn.body))
            continue

        result = expand_placeholders(turn.raw_body, root)
        overrides = overrides.merge(result.overrides)
        warnings.extend(f"turn {turn.ordinal}: {warning}" for warning in result.warnings)
        content = result.text.strip()
        if content:
            messages.append(Message(Role.USER, content))

    return Conversation(
        messages=tuple(messages),
        level=default_level if overrides.level is None else overrides.level,
        temperature=default_temperature if overrides.temperature is None else overrides.temperature,
        warnings=tuple(warnings),
    )
