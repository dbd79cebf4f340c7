from __future__ import annotations

import asyncio
from pathlib import Path


SCRIPT_NAME = "Script.s.sol"
SCRIPT_RELATIVE = Path("script") / SCRIPT_NAME
SESSION_FILE = "session.json"
REMAPPINGS_FILE = "remappings.txt"
LIB_DIR = "lib"


def script_path(root: Path) -> Path:
    return root / SCRIPT_RELATIVE


def session_file(root: Path) -> Path:
    return root / SESSION_FILE


def remappings_file(root: Path) -> Path:
    return root / REMAPPINGS_FILE


def library_path(root: Path, name: str) -> Path:
    return root / LIB_DIR / name


def dry_run_output_path(root: Path, chain_id: str) -> Path:
    """Location of the structured output ``forge script`` writes for a dry run."""

    return root / "broadcast" / SCRIPT_NAME / str(chain_id) / "dry-run" / "run-latest.json"


def dry_run_outputs(root: Path) -> list[Path]:
    return list((root / "broadcast" / SCRIPT_NAME).glob("*/dry-run/run-latest.json"))


def latest_dry_run_output(root: Path) -> Path | None:
    """Most recently written dry-run output, whatever chain the fork reported."""

    candidates = dry_run_outputs(root)
    if not candidates:
        return None
    return max(candidates, key=lambda path: path.stat().st_mtime)


def clear_dry_run_outputs(root: Path) -> None:
    for path in dry_run_outputs(root):
        path.unlink(missing_ok=True)


def list_libraries(root: Path) -> list[str]:
    lib_root = root / LIB_DIR
    if not lib_root.is_dir():
        return []
    return sorted(entry.name for entry in lib_root.iterdir() if entry.is_dir())


def list_files(root: Path) -> list[str]:
    """Top-level entries of a workspace, for progress messages."""

    if not root.is_dir():
        return []
    return sorted(entry.name + ("/" if entry.is_dir() else "") for entry in root.iterdir())


def _write_script(root: Path, code: str) -> Path:
    target = script_path(root)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(code.strip() + "\n", encoding="utf-8")
    return target


async def write_script(root: Path, code: str) -> Path:
    """Materialise generated source at the fixed script path (overwrites)."""

    return await asyncio.to_thread(_write_script, root, code)


async def read_script(root: Path) -> str:
    target = script_path(root)

    def _read() -> str:
        if not target.exists():
            return ""
        return target.read_text(encoding="utf-8")

    return await asyncio.to_thread(_read)
