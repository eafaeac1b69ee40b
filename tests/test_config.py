from pathlib import Path

import pytest
from pydantic import ValidationError

from gchat.config import DEFAULT_MODEL, XAI_API_BASE, Settings, get_settings
from gchat.errors import WorkspaceNotFoundError


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.model == DEFAULT_MODEL
    assert settings.api_base == XAI_API_BASE
    assert settings.default_level == 3
    assert settings.default_temperature == 1.0
    assert settings.auto_increase_tokens is True
    assert settings.auto_file_request is True
    assert settings.api_key is None


def test_api_key_from_xai_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XAI_API_KEY", "xai-secret")

    assert Settings(_env_file=None).require_api_key() == "xai-secret"


def test_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GCHAT_DEFAULT_LEVEL", "5")
    monkeypatch.setenv("GCHAT_AUTO_FILE_REQUEST", "false")

    settings = Settings(_env_file=None)

    assert settings.default_level == 5
    assert settings.auto_file_request is False


def test_level_is_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_level=6)


def test_get_settings_ignores_unset_overrides(tmp_path: Path) -> None:
    settings = get_settings(tmp_path, default_level=None, model="grok-y")

    assert settings.workspace_path == tmp_path
    assert settings.model == "grok-y"
    assert settings.default_level == 3


def test_chat_file_is_anchored_at_root(tmp_path: Path) -> None:
    settings = get_settings(tmp_path, chat_file=Path("chat.md"))

    assert settings.resolve_root() == tmp_path.resolve()
    assert settings.resolve_chat_file() == tmp_path.resolve() / "chat.md"


def test_missing_workspace(tmp_path: Path) -> None:
    with pytest.raises(WorkspaceNotFoundError):
        get_settings(tmp_path / "missing").resolve_root()
