"""Baseline project providers used to provision new workspaces."""
from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol, Sequence

from scriptforge.core.commands import run_command_with_output
from scriptforge.core.errors import CommandError, ProvisioningError
from scriptforge.core.events import EventSink
from scriptforge.core.schema import STEP_INSTALLING, StepRecord

logger = logging.getLogger(__name__)


class BaselineTemplateProvider(Protocol):
    """Contract for materialising a starter Foundry project."""

    async def materialize(self, path: Path, sink: EventSink) -> None: ...


def _installing(line: str) -> StepRecord:
    return StepRecord(title=STEP_INSTALLING, output=line)


class CopyTemplate:
    """Copies a prebuilt baseline project into the workspace."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir

    async def materialize(self, path: Path, sink: EventSink) -> None:
        if not self._base_dir.is_dir():
            raise ProvisioningError(f"Baseline project not found: {self._base_dir}")
        await sink.emit(STEP_INSTALLING, f"Copying baseline project from {self._base_dir}\n")
        try:
            await asyncio.to_thread(
                shutil.copytree,
                self._base_dir,
                path,
                symlinks=True,
                dirs_exist_ok=True,
            )
        except (OSError, shutil.Error) as exc:
            raise ProvisioningError(f"Failed to copy baseline project: {exc}") from exc


class ForgeInitTemplate:
    """Initialises a fresh project with ``forge init`` and git submodules."""

    def __init__(
        self,
        *,
        forge_command: Sequence[str] = ("forge",),
        git_command: Sequence[str] = ("git",),
    ) -> None:
        self._forge_command = tuple(forge_command)
        self._git_command = tuple(git_command)

    async def materialize(self, path: Path, sink: EventSink) -> None:
        try:
            await run_command_with_output(
                [*self._forge_command, "init"],
                cwd=path,
                sink=sink,
                to_step=_installing,
            )
            await sink.emit(STEP_INSTALLING, "Initializing git repository...")
            await run_command_with_output(
                [*self._git_command, "submodule", "init"],
                cwd=path,
                sink=sink,
                to_step=_installing,
            )
        except CommandError as exc:
            raise ProvisioningError(str(exc)) from exc
