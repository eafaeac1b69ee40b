"""Configuration management for gchat."""

from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from .errors import ApiKeyNotConfiguredError, WorkspaceNotFoundError

XAI_API_BASE = "https://api.x.ai/v1"
DEFAULT_MODEL = "grok-4-0709"


class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    api_key: Optional[str] = Field(
        None,
        description="API key for the chat completion provider",
        validation_alias=AliasChoices("GCHAT_API_KEY", "XAI_API_KEY"),
    )
    model: str = Field(default=DEFAULT_MODEL, description="Model name")
    api_base: str = Field(default=XAI_API_BASE, description="OpenAI-compatible API base URL")
    api_timeout: float = Field(default=600, gt=0, description="Timeout for one API call in seconds")

    # Document Configuration
    chat_file: Path = Field(default=Path("gchat.md"), description="Chat document to watch")
    workspace_path: Optional[Path] = Field(None, description="Project root for placeholder paths")

    # Generation Configuration
    default_level: int = Field(default=3, ge=0, le=5, description="Default max tokens level (512 * 2**level)")
    default_temperature: float = Field(default=1.0, ge=0.0, le=2.0, description="Default sampling temperature")
    system_prompt: Optional[str] = Field(None, description="Optional system prompt sent before the conversation")

    # Exchange Configuration
    auto_increase_tokens: bool = Field(default=True, description="Retry truncated responses at a higher level")
    auto_file_request: bool = Field(default=True, description="Let the model request project files")
    max_file_requests: int = Field(default=5, ge=0, description="Maximum file request rounds per cycle")

    # Watcher Configuration
    poll_interval: float = Field(default=0.5, gt=0, description="Seconds between chat file checks")
    debounce: float = Field(default=0.5, ge=0, description="Seconds to wait after a change before processing")
    sound: bool = Field(default=True, description="Ring the terminal bell on completion")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    class Config:
        """Pydantic configuration."""

        env_prefix = "GCHAT_"
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    def resolve_root(self) -> Path:
        """Return the canonical project root."""
        root = (self.workspace_path or Path.cwd()).expanduser().resolve()
        if not root.is_dir():
            raise WorkspaceNotFoundError(f"Workspace not found: {root}")
        return root

    def resolve_chat_file(self) -> Path:
        """Return the chat file path, relative paths anchored at the project root."""
        path = self.chat_file.expanduser()
        if path.is_absolute():
            return path
        return self.resolve_root() / path

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ApiKeyNotConfiguredError("API key not configured. Set XAI_API_KEY or GCHAT_API_KEY.")
        return self.api_key


def get_settings(workspace_path: Optional[Path] = None, **overrides: Any) -> Settings:
    """Get application settings.

    Args:
        workspace_path: Optional workspace path override
        **overrides: Field overrides; ``None`` values are ignored so unset CLI
            options fall back to the environment.

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    if workspace_path is not None:
        values["workspace_path"] = workspace_path
    return Settings(**values)
