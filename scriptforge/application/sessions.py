"""Application service layer for session workspaces."""
from __future__ import annotations

import asyncio
import logging

from scriptforge.core.sessions import describe_session, load_session
from scriptforge.infrastructure import WorkspaceRegistry

logger = logging.getLogger(__name__)


class SessionService:
    """Coordinates session listing, history and eviction use cases."""

    def __init__(self, registry: WorkspaceRegistry) -> None:
        self._registry = registry

    async def list_sessions(self) -> list[dict[str, object]]:
        workspaces = await self._registry.list_workspaces()
        return [workspace.summary() for workspace in workspaces]

    async def get_history(self, key: str) -> dict[str, object]:
        workspace = await self._registry.lookup(key)
        data = await load_session(workspace.path)
        overview = workspace.summary()
        overview.update(describe_session(data))
        overview["messages"] = [message.model_dump() for message in data.messages]
        return overview

    async def evict(self, key: str) -> None:
        await self._registry.evict(key)

    async def sweep(self, max_age: float) -> list[str]:
        return await self._registry.evict_expired(max_age)

    async def run_sweeper(self, max_age: float, interval: float) -> None:
        """Evict idle workspaces every ``interval`` seconds until cancelled."""

        logger.info("Session sweeper started (ttl=%ss, interval=%ss)", max_age, interval)
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep(max_age)
            except Exception:
                logger.exception("Session sweep failed; retrying in %ss", interval)
