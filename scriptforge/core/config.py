from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_LLM_API_BASE = "https://llm-gateway.heurist.xyz"
DEFAULT_LLM_MODEL = "qwen/qwen-2.5-coder-32b-instruct"
DEFAULT_CLASSIFIER_MODEL = "mistralai/mixtral-8x7b-instruct"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_path(name: str) -> Path | None:
    raw = os.getenv(name)
    if not raw:
        return None
    return Path(raw).expanduser().resolve()


def _env_command(name: str, default: str) -> tuple[str, ...]:
    return tuple(shlex.split(os.getenv(name) or default))


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration, read once at start-up."""

    max_concurrency: int = 100
    channel_capacity: int = 100
    workspaces_root: Path | None = None
    base_dir: Path | None = None
    guidelines_dir: Path | None = None
    forge_command: tuple[str, ...] = ("forge",)
    npm_command: tuple[str, ...] = ("npm",)
    git_command: tuple[str, ...] = ("git",)
    default_rpc_url: str = DEFAULT_RPC_URL
    chain_id: str | None = None
    session_ttl: float | None = None
    sweep_interval: float = 300.0
    limit_fix: bool = False
    llm_api_base: str = DEFAULT_LLM_API_BASE
    llm_api_key: str | None = None
    llm_model: str = DEFAULT_LLM_MODEL
    llm_classifier_model: str = DEFAULT_CLASSIFIER_MODEL
    llm_timeout: float = 120.0
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = tuple(origin.strip() for origin in origins_env.split(",") if origin.strip())
        return cls(
            max_concurrency=_env_int("FORGE_MAX_CONCURRENCY", 100),
            channel_capacity=_env_int("FORGE_CHANNEL_CAPACITY", 100),
            workspaces_root=_env_path("FORGE_WORKSPACES_ROOT"),
            base_dir=_env_path("FORGE_BASE_DIR"),
            guidelines_dir=_env_path("FORGE_GUIDELINES_DIR"),
            forge_command=_env_command("FORGE_BIN", "forge"),
            npm_command=_env_command("NPM_BIN", "npm"),
            git_command=_env_command("GIT_BIN", "git"),
            default_rpc_url=os.getenv("FORGE_DEFAULT_RPC_URL") or DEFAULT_RPC_URL,
            chain_id=os.getenv("FORGE_CHAIN_ID") or None,
            session_ttl=_env_float("FORGE_SESSION_TTL", None),
            sweep_interval=_env_float("FORGE_SWEEP_INTERVAL", 300.0) or 300.0,
            limit_fix=_env_flag("FORGE_LIMIT_FIX"),
            llm_api_base=os.getenv("LLM_API_BASE") or DEFAULT_LLM_API_BASE,
            llm_api_key=os.getenv("LLM_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL") or DEFAULT_LLM_MODEL,
            llm_classifier_model=os.getenv("LLM_CLASSIFIER_MODEL") or DEFAULT_CLASSIFIER_MODEL,
            llm_timeout=_env_float("LLM_TIMEOUT", 120.0) or 120.0,
            cors_origins=origins or DEFAULT_CORS_ORIGINS,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
            api_host=os.getenv("API_HOST") or "0.0.0.0",
            api_port=_env_int("API_PORT", 8000),
        )
