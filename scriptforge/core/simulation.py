"""Dry-run execution of the materialised script and parsing of its output."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from scriptforge.core.commands import CommandResult, capture_command
from scriptforge.core.errors import SimulationOutputError
from scriptforge.core.schema import ForgeOutput, TransactionDetails
from scriptforge.core.workspaces import (
    SCRIPT_RELATIVE,
    clear_dry_run_outputs,
    dry_run_output_path,
    latest_dry_run_output,
)

logger = logging.getLogger(__name__)


def simulation_args(forge_command: Sequence[str], rpc_url: str) -> list[str]:
    return [
        *forge_command,
        "script",
        SCRIPT_RELATIVE.as_posix(),
        "--fork-url",
        rpc_url,
        "--json",
        "-vvvv",
    ]


async def simulate(project_path: Path, rpc_url: str, *, forge_command: Sequence[str] = ("forge",)) -> CommandResult:
    """Run the script against a fork; output is captured, not streamed."""

    logger.info("Simulating %s against %s", project_path, rpc_url)
    await asyncio.to_thread(clear_dry_run_outputs, project_path)
    return await capture_command(simulation_args(forge_command, rpc_url), cwd=project_path)


def reduce_transactions(output: ForgeOutput) -> list[TransactionDetails]:
    details: list[TransactionDetails] = []
    for item in output.transactions:
        details.append(
            TransactionDetails(
                to=item.contractAddress or item.transaction.to or "",
                function=item.function or "",
                arguments=list(item.arguments or []),
                value=item.transaction.value,
                input_data=item.transaction.input,
            )
        )
    return details


def parse_forge_output(content: str) -> list[TransactionDetails]:
    try:
        output = ForgeOutput.model_validate_json(content)
    except ValidationError as exc:
        raise SimulationOutputError(f"Failed to parse Forge output: {exc}") from exc
    return reduce_transactions(output)


def _read_transactions(project_path: Path, chain_id: str | None) -> list[TransactionDetails]:
    path = dry_run_output_path(project_path, chain_id) if chain_id else latest_dry_run_output(project_path)
    if path is None or not path.exists():
        logger.info("No dry-run output under %s; treating as zero transactions", project_path)
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SimulationOutputError(f"Failed to read Forge output: {exc}") from exc
    return parse_forge_output(content)


async def load_transactions(project_path: Path, chain_id: str | None = None) -> list[TransactionDetails]:
    """Transaction details from the dry-run file; an absent file means none.

    Without ``chain_id`` the newest output is used, so forks of any chain are
    picked up.
    """

    return await asyncio.to_thread(_read_transactions, project_path, chain_id)


def dumps_transactions(transactions: list[TransactionDetails]) -> str:
    return json.dumps([item.model_dump() for item in transactions])
