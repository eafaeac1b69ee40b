"""Console notifications for finished cycles."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Protocol

from rich.console import Console
from rich.markup import escape

SUCCESS_CHIMES = 1
FAILURE_CHIMES = 3
CHIME_GAP_SECONDS = 0.15


@dataclass(frozen=True)
class Notification:
    success: bool
    message: str


class Notifier(Protocol):
    def status(self, message: str) -> None: ...

    def notify(self, notification: Notification) -> None: ...


class ConsoleNotifier:
    """Renders cycle outcomes with Rich and rings the terminal bell."""

    def __init__(self, console: Console | None = None, *, sound: bool = True) -> None:
        self.console: Console = console or Console()
        self._sound = sound
        self._print_lock = threading.Lock()

    def status(self, message: str) -> None:
        """Render a progress line."""
        self._print(f"[dim]{escape(message)}[/dim]")

    def notify(self, notification: Notification) -> None:
        if notification.success:
            self._print(f"[bold green]Done:[/bold green] {escape(notification.message)}")
            self._chime(SUCCESS_CHIMES)
        else:
            self._print(f"[bold red]Error:[/bold red] {escape(notification.message)}")
            self._chime(FAILURE_CHIMES)

    def settings(self, rows: dict[str, object]) -> None:
        """Render startup settings."""
        self._print("[bold]Running with settings:[/bold]")
        for name, value in rows.items():
            self._print(f"  [bold]{escape(name)}:[/bold] [cyan]{escape(str(value))}[/cyan]")

    def _chime(self, count: int) -> None:
        if not self._sound:
            return
        for index in range(count):
            if index:
                time.sleep(CHIME_GAP_SECONDS)
            self.console.bell()

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)
