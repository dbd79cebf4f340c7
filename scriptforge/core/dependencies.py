from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from scriptforge.core.commands import capture_command, run_command_with_output
from scriptforge.core.errors import CommandError, DependencyInstallError
from scriptforge.core.events import EventSink
from scriptforge.core.schema import STEP_INSTALLING, StepRecord
from scriptforge.core.workspaces import library_path, remappings_file

logger = logging.getLogger(__name__)


def _installing(line: str) -> StepRecord:
    return StepRecord(title=STEP_INSTALLING, output=line)


def library_name(component: str) -> str:
    """``owner/repo@ref`` -> ``repo``, the directory forge installs into."""

    return component.rstrip("/").split("/")[-1].split("@")[0]


async def install_dependencies(
    project_path: Path,
    lib_name: str,
    sink: EventSink,
    *,
    forge_command: Sequence[str] = ("forge",),
    npm_command: Sequence[str] = ("npm",),
) -> None:
    """Install the nested dependencies of ``lib/<lib_name>``.

    Each manifest marker found triggers one install run; a library without
    markers needs nothing.
    """

    lib_path = library_path(project_path, lib_name)

    if (lib_path / "package.json").exists():
        logger.info("Running npm install for %s", lib_name)
        await run_command_with_output(
            [*npm_command, "install"],
            cwd=lib_path,
            sink=sink,
            to_step=_installing,
        )

    if (lib_path / "foundry.toml").exists() or (lib_path / "remappings.txt").exists():
        logger.info("Running forge install for %s", lib_name)
        await run_command_with_output(
            [*forge_command, "install", lib_name, "--no-commit"],
            cwd=project_path,
            sink=sink,
            to_step=_installing,
        )


async def install_component(
    project_path: Path,
    component: str,
    sink: EventSink,
    *,
    forge_command: Sequence[str] = ("forge",),
    npm_command: Sequence[str] = ("npm",),
) -> None:
    """Fetch ``component`` into ``lib/`` and install what it depends on."""

    await sink.emit(STEP_INSTALLING, component + "\n")
    try:
        await run_command_with_output(
            [*forge_command, "install", component, "--no-commit"],
            cwd=project_path,
            sink=sink,
            to_step=_installing,
        )
    except CommandError as exc:
        raise DependencyInstallError(f"Failed to install {component}: {exc}") from exc

    lib_name = library_name(component)
    try:
        await install_dependencies(
            project_path,
            lib_name,
            sink,
            forge_command=forge_command,
            npm_command=npm_command,
        )
    except CommandError as exc:
        raise DependencyInstallError(f"Failed to install dependencies for {lib_name}: {exc}") from exc


async def load_remappings(project_path: Path, *, forge_command: Sequence[str] = ("forge",)) -> str:
    """Import remappings the generated script must stick to.

    Reads ``remappings.txt`` when present; otherwise asks ``forge remappings``
    and writes its answer there. Failure yields no remappings.
    """

    target = remappings_file(project_path)
    if target.exists():
        return await asyncio.to_thread(target.read_text, encoding="utf-8")

    try:
        result = await capture_command([*forge_command, "remappings"], cwd=project_path)
    except CommandError as exc:
        logger.warning("Could not list remappings for %s: %s", project_path, exc)
        return ""
    if not result.ok:
        logger.warning("forge remappings failed for %s: %s", project_path, result.diagnostics.strip())
        return ""

    remappings = result.stdout.strip()
    if remappings:
        await asyncio.to_thread(target.write_text, remappings + "\n", encoding="utf-8")
    return remappings
