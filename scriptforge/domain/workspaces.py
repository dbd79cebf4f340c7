"""Domain entities for session workspaces."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class Workspace:
    """A session's exclusively-owned project directory.

    ``key`` is the directory path as a string and doubles as the session key
    handed to clients.
    """

    key: str
    path: Path
    session_id: str
    created_at: float = field(default_factory=time.time)
    last_used_at: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def busy(self) -> bool:
        return self.lock.locked()

    def touch(self) -> None:
        self.last_used_at = time.time()

    def summary(self) -> dict[str, object]:
        return {
            "temp_dir": self.key,
            "session_id": self.session_id,
            "created_at": self.created_at,
            "last_used_at": self.last_used_at,
            "busy": self.busy,
        }
