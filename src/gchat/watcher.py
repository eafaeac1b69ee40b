"""Processing cycles and the chat file watch loop."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from .document import commit, has_pending_user_turn, parse
from .errors import TransportError
from .exchange import ExchangeOrchestrator, ExchangeOutcome
from .notify import Notification, Notifier

THINKING_MESSAGE = "Grok is thinking..."


@dataclass(frozen=True)
class FileSignature:
    mtime_ns: int
    size: int


def file_signature(path: Path) -> FileSignature | None:
    try:
        stat = path.stat()
    except OSError:
        return None
    return FileSignature(stat.st_mtime_ns, stat.st_size)


class ChatSession:
    """One chat document bound to an orchestrator and a notifier."""

    def __init__(self, chat_file: Path, orchestrator: ExchangeOrchestrator, notifier: Notifier) -> None:
        self.chat_file = chat_file
        self._orchestrator = orchestrator
        self._notifier = notifier

    def process(self) -> bool:
        """Run one cycle. Returns True when the document was rewritten.

        The document is read once here and written once at the end; a transport
        failure leaves it untouched so the user can retry by saving again.
        """

        try:
            text = self.chat_file.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            logger.error("cycle.read_failed path={} error={}", self.chat_file, exc)
            self._notifier.notify(Notification(False, f"Cannot read {self.chat_file}: {exc!s}"))
            return False

        turns = parse(text)
        if not has_pending_user_turn(turns):
            logger.info("cycle.skip path={} reason=no_pending_prompt", self.chat_file)
            return False

        self._notifier.status(THINKING_MESSAGE)
        try:
            outcome = self._orchestrator.run(turns)
        except TransportError as exc:
            logger.error("cycle.failed path={} error={}", self.chat_file, exc)
            self._notifier.notify(Notification(False, f"Grok failed to respond: {exc!s}"))
            return False

        updated = commit(text, turns, outcome.user_body, outcome.response)
        try:
            self.chat_file.write_text(updated, encoding="utf-8")
        except OSError as exc:
            logger.error("cycle.write_failed path={} error={}", self.chat_file, exc)
            self._notifier.notify(Notification(False, f"Cannot write {self.chat_file}: {exc!s}"))
            return False

        logger.info("cycle.committed path={} calls={}", self.chat_file, outcome.calls)
        self._notifier.notify(Notification(True, _summary(outcome)))
        return True


class ChatFileWatcher:
    """Polls the chat file and runs strictly sequential cycles on change."""

    def __init__(
        self,
        session: ChatSession,
        *,
        poll_interval: float = 0.5,
        debounce: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._session = session
        self._poll_interval = poll_interval
        self._debounce = debounce
        self._sleep = sleep
        self._last_seen: FileSignature | None = None
        self._stopped = False

    @property
    def path(self) -> Path:
        return self._session.chat_file

    def run(self) -> None:
        """Process once on startup, then watch until stopped."""
        logger.info("watcher.start path={}", self.path)
        self.process()
        while not self._stopped:
            self._sleep(self._poll_interval)
            self.poll_once()

    def stop(self) -> None:
        self._stopped = True

    def poll_once(self) -> bool:
        """Process the document if it changed since the last cycle."""
        if file_signature(self.path) == self._last_seen:
            return False
        logger.debug("watcher.change path={}", self.path)
        self._sleep(self._debounce)
        self.process()
        return True

    def process(self) -> bool:
        updated = self._session.process()
        # our own commit must not trigger the next cycle
        self._last_seen = file_signature(self.path)
        return updated


def _summary(outcome: ExchangeOutcome) -> str:
    parts = [f"Grok has thought ({outcome.calls} call{'s' if outcome.calls != 1 else ''}, level L{outcome.level})."]
    if outcome.appended:
        parts.append(f"Supplied requested files: {', '.join(outcome.appended)}.")
    if outcome.truncated:
        parts.append("Warning: response truncated due to max_tokens limit!")
    if outcome.warnings:
        extra = len(outcome.warnings) - 1
        more = f" (+{extra} more, see log)" if extra else ""
        parts.append(f"Warning: {outcome.warnings[0]}{more}")
    return " ".join(parts)
