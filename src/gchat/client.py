"""Chat completion client used by the exchange orchestrator."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import openai
from loguru import logger
from openai import OpenAI

from .config import Settings
from .conversation import Message
from .errors import ApiKeyNotConfiguredError, TransportError

FINISH_REASON_LENGTH = "length"


@dataclass(frozen=True)
class ChatReply:
    text: str
    truncated: bool = False


class ChatClient(Protocol):
    def send(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int,
        temperature: float,
        timeout: float,
    ) -> ChatReply:
        """Send one request; raise TransportError on any transport failure."""
        ...


class OpenAIChatClient:
    """OpenAI-compatible chat completions client (xAI by default)."""

    def __init__(self, api_key: str, model: str, api_base: str | None = None, client: OpenAI | None = None) -> None:
        if not (api_key and model):
            raise ApiKeyNotConfiguredError("API key not configured. Set XAI_API_KEY or GCHAT_API_KEY.")
        self.model = model
        # no transport-level retries
        self._client = client or OpenAI(api_key=api_key, base_url=api_base, max_retries=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenAIChatClient:
        return cls(settings.require_api_key(), settings.model, settings.api_base)

    def send(
        self,
        messages: Sequence[Message],
        *,
        max_tokens: int,
        temperature: float,
        timeout: float,
    ) -> ChatReply:
        logger.debug(
            "client.send model={} messages={} max_tokens={} temperature={}",
            self.model,
            len(messages),
            max_tokens,
            temperature,
        )
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=[message.as_dict() for message in messages],  # type: ignore[misc]
                max_tokens=max_tokens,
                temperature=temperature,
                timeout=timeout,
            )
        except openai.APIStatusError as exc:
            raise TransportError(f"API error {exc.status_code}: {exc.message}") from exc
        except openai.APITimeoutError as exc:
            raise TransportError(f"no response within {timeout:g}s") from exc
        except openai.APIError as exc:
            raise TransportError(f"request error: {exc!s}") from exc

        if not completion.choices:
            raise TransportError("API response contained no choices")
        choice = completion.choices[0]
        return ChatReply(
            text=choice.message.content or "",
            truncated=choice.finish_reason == FINISH_REASON_LENGTH,
        )
