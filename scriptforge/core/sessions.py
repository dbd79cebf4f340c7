"""Persistence of the conversation history kept in each workspace."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path

from pydantic import ValidationError

from scriptforge.core.errors import SessionDocumentError
from scriptforge.core.schema import ChatMessage, SessionData
from scriptforge.core.workspaces import session_file


def _load(path: Path) -> SessionData:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SessionDocumentError(f"Failed to read session file: {exc}") from exc
    try:
        return SessionData.model_validate_json(content)
    except ValidationError as exc:
        raise SessionDocumentError(f"Failed to parse session data: {exc}") from exc


def _save(path: Path, data: SessionData) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_text(data.model_dump_json(), encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as exc:
        raise SessionDocumentError(f"Failed to write session file: {exc}") from exc


async def load_session(root: Path) -> SessionData:
    """Read ``session.json``; a missing or corrupt document is an error."""

    return await asyncio.to_thread(_load, session_file(root))


async def save_session(root: Path, messages: list[ChatMessage]) -> None:
    """Rewrite ``session.json`` atomically with the full history."""

    await asyncio.to_thread(_save, session_file(root), SessionData(messages=list(messages)))


def describe_session(data: SessionData) -> dict[str, object]:
    roles: dict[str, int] = {}
    for message in data.messages:
        roles[message.role] = roles.get(message.role, 0) + 1
    return {"turns": len(data.messages), "roles": roles}
