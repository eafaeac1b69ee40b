"""Exchange orchestrator: one processing cycle against the chat API.

A cycle may issue several sequential calls before it settles on one response:

* truncated replies are retried at the next token level (up to L5);
* a reply consisting solely of ``GROK REQUESTS FILES: a, b`` appends the
  requested files to the pending prompt and asks again.

Both loops are bounded: token levels only go up within a round, and every
file round must add a file not appended earlier in the cycle.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from .client import ChatClient, ChatReply
from .conversation import Message, build_conversation
from .document import Role, Turn, pending_user_turn
from .errors import DocumentError
from .paths import relative_label, resolve_paths
from .placeholders import MAX_LEVEL, file_request_lines, level_to_tokens, read_file_blocks

FILE_REQUEST_PREFIX = "GROK REQUESTS FILES: "
FILE_REQUEST_RE = re.compile(re.escape(FILE_REQUEST_PREFIX) + r"(?P<paths>[^\r\n]+)")
FILE_REQUEST_INSTRUCTION = (
    "The user works inside a project directory. If answering requires project files that are not "
    "already in the conversation, reply with exactly one line and nothing else:\n"
    f"{FILE_REQUEST_PREFIX}<relative/path/one>, <relative/path/two>\n"
    "Paths must be relative to the project root. The files will be supplied and the prompt sent again."
)


class ExchangeStep(str, Enum):
    BUILD = "build"
    CALL = "call"
    INSPECT = "inspect"
    RETRY_TOKENS = "retry_tokens"
    REQUEST_FILES = "request_files"
    APPEND_AND_REEXPAND = "append_and_reexpand"
    DONE = "done"


@dataclass
class ExchangeState:
    """Mutable state of one cycle; discarded when the cycle ends."""

    messages: tuple[Message, ...]
    user_body: str
    start_level: int
    current_level: int
    temperature: float
    file_rounds_remaining: int
    calls: int = 0
    reply: ChatReply | None = None
    requested: list[str] = field(default_factory=list)
    resolved: list[Path] = field(default_factory=list)
    appended: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ExchangeOutcome:
    response: str
    user_body: str
    truncated: bool
    calls: int
    level: int
    warnings: tuple[str, ...] = ()
    appended: tuple[str, ...] = ()


def parse_file_request(text: str) -> list[str] | None:
    """Return requested paths when ``text`` is exactly a file request line."""
    match = FILE_REQUEST_RE.fullmatch(text.strip())
    if match is None:
        return None
    paths = [path.strip() for path in match.group("paths").split(",")]
    return [path for path in paths if path] or None


def truncation_warning(level: int) -> str:
    return f"[WARNING: response truncated at {level_to_tokens(level)} max tokens (level L{level})]"


class ExchangeOrchestrator:
    """Runs the build/call/inspect state machine for one pending user turn."""

    def __init__(
        self,
        client: ChatClient,
        root: Path,
        *,
        default_level: int,
        default_temperature: float,
        auto_increase_tokens: bool = True,
        auto_file_request: bool = True,
        max_file_requests: int = 5,
        system_prompt: str | None = None,
        timeout: float = 600.0,
    ) -> None:
        self._client = client
        self._root = root.resolve()
        self._default_level = default_level
        self._default_temperature = default_temperature
        self._auto_increase_tokens = auto_increase_tokens
        self._auto_file_request = auto_file_request
        self._max_file_requests = max_file_requests
        self._system_prompt = system_prompt
        self._timeout = timeout
        self._handlers: dict[ExchangeStep, Callable[[ExchangeState], ExchangeStep]] = {
            ExchangeStep.CALL: self._call,
            ExchangeStep.INSPECT: self._inspect,
            ExchangeStep.RETRY_TOKENS: self._retry_tokens,
            ExchangeStep.REQUEST_FILES: self._request_files,
            ExchangeStep.APPEND_AND_REEXPAND: self._append_and_reexpand,
        }

    def run(self, turns: Sequence[Turn]) -> ExchangeOutcome:
        """Drive the cycle to completion. TransportError propagates unchanged."""
        state = self._build(turns)
        step = ExchangeStep.CALL
        while step is not ExchangeStep.DONE:
            step = self._handlers[step](state)
        return self._finish(state)

    def _build(self, turns: Sequence[Turn]) -> ExchangeState:
        pending = pending_user_turn(turns)
        if pending is None:
            raise DocumentError("no pending user prompt")

        conversation = build_conversation(
            turns,
            self._root,
            default_level=self._default_level,
            default_temperature=self._default_temperature,
            system_prompt=self._render_system_prompt(),
        )
        logger.info(
            "exchange.build messages={} level={} temperature={} warnings={}",
            len(conversation.messages),
            conversation.level,
            conversation.temperature,
            len(conversation.warnings),
        )
        return ExchangeState(
            messages=conversation.messages,
            user_body=pending.body,
            start_level=conversation.level,
            current_level=conversation.level,
            temperature=conversation.temperature,
            file_rounds_remaining=self._max_file_requests,
            warnings=list(conversation.warnings),
        )

    def _call(self, state: ExchangeState) -> ExchangeStep:
        state.calls += 1
        max_tokens = level_to_tokens(state.current_level)
        logger.info(
            "exchange.call attempt={} level={} max_tokens={} temperature={}",
            state.calls,
            state.current_level,
            max_tokens,
            state.temperature,
        )
        state.reply = self._client.send(
            state.messages,
            max_tokens=max_tokens,
            temperature=state.temperature,
            timeout=self._timeout,
        )
        return ExchangeStep.INSPECT

    def _inspect(self, state: ExchangeState) -> ExchangeStep:
        reply = _require_reply(state)
        if reply.truncated and self._auto_increase_tokens and state.current_level < MAX_LEVEL:
            return ExchangeStep.RETRY_TOKENS

        requested = parse_file_request(reply.text)
        if requested is not None and self._auto_file_request:
            state.requested = requested
            return ExchangeStep.REQUEST_FILES
        return ExchangeStep.DONE

    def _retry_tokens(self, state: ExchangeState) -> ExchangeStep:
        state.current_level += 1
        logger.info("exchange.retry_tokens level={}", state.current_level)
        return ExchangeStep.CALL

    def _request_files(self, state: ExchangeState) -> ExchangeStep:
        if state.file_rounds_remaining <= 0:
            logger.warning("exchange.request_files.exhausted rounds={}", self._max_file_requests)
            return ExchangeStep.DONE

        # novelty is keyed on resolved file labels, not on request spelling
        novel: dict[str, Path] = {}
        for entry in state.requested:
            if any(ch.isspace() for ch in entry):
                logger.debug("exchange.request_files.drop path={}", entry)
                continue
            for path in resolve_paths(entry, self._root, lenient=True):
                label = relative_label(path, self._root)
                if label in state.appended or label in novel or any(ch.isspace() for ch in label):
                    continue
                novel[label] = path

        if not novel:
            logger.info("exchange.request_files.ignored requested={}", state.requested)
            return ExchangeStep.DONE
        state.resolved = [novel[label] for label in sorted(novel)]
        logger.info("exchange.request_files paths={}", sorted(novel))
        return ExchangeStep.APPEND_AND_REEXPAND

    def _append_and_reexpand(self, state: ExchangeState) -> ExchangeStep:
        labels = [relative_label(path, self._root) for path in state.resolved]
        lines = file_request_lines(labels)
        blocks = read_file_blocks(
            state.resolved, self._root, FILE_REQUEST_PREFIX.strip(), state.warnings, []
        )
        state.appended.extend(labels)
        state.user_body = f"{state.user_body.rstrip()}\n{lines}"
        if blocks:
            state.messages = _extend_last_user_message(state.messages, "\n".join(blocks).strip())
        state.current_level = state.start_level
        state.file_rounds_remaining -= 1
        return ExchangeStep.CALL

    def _finish(self, state: ExchangeState) -> ExchangeOutcome:
        reply = _require_reply(state)
        response = reply.text
        if reply.truncated:
            warning = truncation_warning(state.current_level)
            state.warnings.append(warning)
            response = f"{warning}\n{response}"
        logger.info(
            "exchange.done calls={} level={} truncated={} appended={}",
            state.calls,
            state.current_level,
            reply.truncated,
            len(state.appended),
        )
        return ExchangeOutcome(
            response=response,
            user_body=state.user_body,
            truncated=reply.truncated,
            calls=state.calls,
            level=state.current_level,
            warnings=tuple(state.warnings),
            appended=tuple(state.appended),
        )

    def _render_system_prompt(self) -> str | None:
        blocks = [self._system_prompt or ""]
        if self._auto_file_request:
            blocks.append(FILE_REQUEST_INSTRUCTION)
        prompt = "\n\n".join(block.strip() for block in blocks if block.strip())
        return prompt or None


def _require_reply(state: ExchangeState) -> ChatReply:
    if state.reply is None:
        raise RuntimeError("exchange state has no reply")
    return state.reply


def _extend_last_user_message(messages: tuple[Message, ...], extra: str) -> tuple[Message, ...]:
    for index in range(len(messages) - 1, -1, -1):
        message = messages[index]
        if message.role is Role.USER:
            extended = Message(Role.USER, f"{message.content}\n\n{extra}")
            return (*messages[:index], extended, *messages[index + 1 :])
    return (*messages, Message(Role.USER, extra))
