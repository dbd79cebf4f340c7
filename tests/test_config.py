from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from scriptforge.core.config import DEFAULT_CORS_ORIGINS, DEFAULT_RPC_URL, Settings


def test_settings_defaults(monkeypatch):
    for name in (
        "FORGE_MAX_CONCURRENCY",
        "FORGE_BIN",
        "FORGE_SESSION_TTL",
        "FORGE_CHAIN_ID",
        "API_CORS_ORIGINS",
        "API_HOST",
        "API_PORT",
        "FORGE_LIMIT_FIX",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.max_concurrency == 100
    assert settings.forge_command == ("forge",)
    assert settings.default_rpc_url == DEFAULT_RPC_URL
    assert settings.session_ttl is None
    assert settings.limit_fix is False
    assert settings.chain_id is None
    assert settings.cors_origins == DEFAULT_CORS_ORIGINS
    assert (settings.api_host, settings.api_port) == ("0.0.0.0", 8000)


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("FORGE_MAX_CONCURRENCY", "3")
    monkeypatch.setenv("FORGE_BIN", "/opt/foundry/bin/forge --offline")
    monkeypatch.setenv("FORGE_WORKSPACES_ROOT", str(tmp_path))
    monkeypatch.setenv("FORGE_SESSION_TTL", "600")
    monkeypatch.setenv("FORGE_LIMIT_FIX", "true")
    monkeypatch.setenv("FORGE_CHAIN_ID", "8453")
    monkeypatch.setenv("API_CORS_ORIGINS", "https://app.example, https://admin.example ,")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("API_PORT", "9100")

    settings = Settings.from_env()

    assert settings.max_concurrency == 3
    assert settings.forge_command == ("/opt/foundry/bin/forge", "--offline")
    assert settings.workspaces_root == tmp_path.resolve()
    assert settings.session_ttl == 600.0
    assert settings.limit_fix is True
    assert settings.chain_id == "8453"
    assert settings.cors_origins == ("https://app.example", "https://admin.example")
    assert settings.log_level == "DEBUG"
    assert settings.api_port == 9100
