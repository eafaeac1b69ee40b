"""gchat command line entry point."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from gchat.client import ChatClient, OpenAIChatClient
from gchat.config import Settings, get_settings
from gchat.document import USER_PROMPT_MARKER, ensure_chat_file
from gchat.errors import ConfigurationError
from gchat.exchange import ExchangeOrchestrator
from gchat.logging_utils import configure_logging
from gchat.notify import ConsoleNotifier
from gchat.placeholders import level_to_tokens
from gchat.watcher import ChatFileWatcher, ChatSession

app = typer.Typer(name="gchat", help="Chat with Grok by editing a plain text file.", add_completion=False)


def build_session(settings: Settings, client: ChatClient, notifier: ConsoleNotifier) -> ChatSession:
    """Wire the orchestrator for one chat file from settings."""
    orchestrator = ExchangeOrchestrator(
        client,
        settings.resolve_root(),
        default_level=settings.default_level,
        default_temperature=settings.default_temperature,
        auto_increase_tokens=settings.auto_increase_tokens,
        auto_file_request=settings.auto_file_request,
        max_file_requests=settings.max_file_requests,
        system_prompt=settings.system_prompt,
        timeout=settings.api_timeout,
    )
    return ChatSession(settings.resolve_chat_file(), orchestrator, notifier)


@app.command()
def watch(
    chat_file: Path | None = typer.Option(None, "--file", "-f", help="Chat file to watch"),  # noqa: B008
    level: int | None = typer.Option(None, "--level", "-t", min=0, max=5, help="Default max tokens level (0-5)"),
    temperature: float | None = typer.Option(None, "--temperature", "-p", min=0.0, max=2.0, help="Default temperature"),
    api_timeout: float | None = typer.Option(None, "--timeout", "-T", help="API timeout in seconds"),
    root: Path | None = typer.Option(None, "--root", "-r", help="Project root for placeholder paths"),  # noqa: B008
    model: str | None = typer.Option(None, "--model", help="Model name"),
    auto_tokens: bool | None = typer.Option(
        None, "--auto-tokens/--no-auto-tokens", help="Retry truncated responses with more tokens"
    ),
    auto_files: bool | None = typer.Option(
        None, "--auto-files/--no-auto-files", help="Let the model request project files"
    ),
    sound: bool | None = typer.Option(None, "--sound/--no-sound", help="Ring the terminal bell when done"),
    once: bool = typer.Option(False, "--once", help="Process the chat file once and exit"),
    log_level: str | None = typer.Option(None, "--log-level", help="Log level"),
) -> None:
    """Watch the chat file and answer every new USER PROMPT section."""

    try:
        settings = get_settings(
            root,
            chat_file=chat_file,
            default_level=level,
            default_temperature=temperature,
            api_timeout=api_timeout,
            model=model,
            auto_increase_tokens=auto_tokens,
            auto_file_request=auto_files,
            sound=sound,
            log_level=log_level,
        )
        settings.resolve_root()
        client = OpenAIChatClient.from_settings(settings)
    except (ConfigurationError, ValidationError) as exc:
        typer.secho(f"Error: {exc!s}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc

    configure_logging(settings.log_level)
    notifier = ConsoleNotifier(sound=settings.sound)
    session = build_session(settings, client, notifier)

    if ensure_chat_file(session.chat_file):
        notifier.status(
            f"Created chat file at {session.chat_file}. Start your conversation by writing "
            f"under {USER_PROMPT_MARKER}"
        )

    notifier.settings(
        {
            "Chat file": session.chat_file,
            "Project root": settings.resolve_root(),
            "Model": settings.model,
            "Max tokens": f"{level_to_tokens(settings.default_level)} (L{settings.default_level})",
            "Temperature": settings.default_temperature,
            "API timeout": f"{settings.api_timeout:g} seconds",
            "Auto increase tokens": settings.auto_increase_tokens,
            "Auto file requests": settings.auto_file_request,
        }
    )

    if once:
        session.process()
        return

    watcher = ChatFileWatcher(session, poll_interval=settings.poll_interval, debounce=settings.debounce)
    notifier.status(f"Watching {session.chat_file} for changes.")
    try:
        watcher.run()
    except KeyboardInterrupt:
        notifier.status("Stopped watching.")


if __name__ == "__main__":
    app()
