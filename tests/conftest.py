from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    for name in ("XAI_API_KEY", "GCHAT_API_KEY", "GCHAT_DEFAULT_LEVEL", "GCHAT_CHAT_FILE", "GCHAT_WORKSPACE_PATH"):
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the settings under test
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
