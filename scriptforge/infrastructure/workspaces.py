"""Infrastructure layer for session workspaces."""
from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Protocol

from scriptforge.core.errors import ProvisioningError, SessionBusy, SessionNotFound
from scriptforge.domain import Workspace

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


class WorkspaceRegistry(Protocol):
    """Process-wide mapping of session keys to workspaces."""

    async def allocate(self, session_id: str) -> Workspace: ...

    async def lookup(self, key: str) -> Workspace: ...

    async def evict(self, key: str) -> None: ...

    async def evict_expired(self, max_age: float) -> list[str]: ...

    async def list_workspaces(self) -> list[Workspace]: ...


class TempDirWorkspaceRegistry:
    """Registry backed by fresh temporary directories.

    The lock guards the mapping only; directory creation and removal happen
    outside it.
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root
        self._workspaces: dict[str, Workspace] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _prefix(session_id: str) -> str:
        safe = _UNSAFE_CHARS.sub("", session_id)[:64]
        return f"forge_{safe}_"

    def _make_directory(self, session_id: str) -> Path:
        if self._root is not None:
            self._root.mkdir(parents=True, exist_ok=True)
        created = tempfile.mkdtemp(prefix=self._prefix(session_id), dir=self._root)
        return Path(created).resolve()

    @staticmethod
    def _remove_directory(path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)

    # ------------------------------------------------------------------
    # registry operations
    # ------------------------------------------------------------------
    async def allocate(self, session_id: str) -> Workspace:
        try:
            path = await asyncio.to_thread(self._make_directory, session_id)
        except OSError as exc:
            raise ProvisioningError(f"Failed to create temp directory: {exc}") from exc
        workspace = Workspace(key=str(path), path=path, session_id=session_id)
        async with self._lock:
            self._workspaces[workspace.key] = workspace
        logger.info("Allocated workspace %s for session %s", workspace.key, session_id)
        return workspace

    async def lookup(self, key: str) -> Workspace:
        async with self._lock:
            workspace = self._workspaces.get(key)
        if workspace is None:
            raise SessionNotFound(key)
        workspace.touch()
        return workspace

    async def evict(self, key: str) -> None:
        async with self._lock:
            workspace = self._workspaces.get(key)
            if workspace is None:
                raise SessionNotFound(key)
            if workspace.busy:
                raise SessionBusy(key)
            del self._workspaces[key]
        await asyncio.to_thread(self._remove_directory, workspace.path)
        logger.info("Evicted workspace %s", key)

    async def evict_expired(self, max_age: float) -> list[str]:
        cutoff = time.time() - max_age
        async with self._lock:
            expired = [
                workspace
                for workspace in self._workspaces.values()
                if not workspace.busy and workspace.last_used_at < cutoff
            ]
            for workspace in expired:
                del self._workspaces[workspace.key]
        for workspace in expired:
            await asyncio.to_thread(self._remove_directory, workspace.path)
        if expired:
            logger.info("Evicted %d idle workspaces", len(expired))
        return [workspace.key for workspace in expired]

    async def list_workspaces(self) -> list[Workspace]:
        async with self._lock:
            workspaces = list(self._workspaces.values())
        workspaces.sort(key=lambda item: item.created_at, reverse=True)
        return workspaces
