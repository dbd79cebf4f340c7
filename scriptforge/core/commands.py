"""Subprocess helpers that stream output into an :class:`EventSink`."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from scriptforge.core.errors import CommandError, SinkClosed
from scriptforge.core.events import EventSink
from scriptforge.core.schema import StepRecord

logger = logging.getLogger(__name__)

PROGRESS_MARKERS = (
    "Counting objects:",
    "Compressing objects:",
    "Receiving objects:",
    "Resolving deltas:",
)

# per-line read limit; longer lines are skipped
STREAM_LIMIT = 1 << 20

StepFactory = Callable[[str], StepRecord]


@dataclass(slots=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def diagnostics(self) -> str:
        """Text worth showing a user when the command failed."""

        return self.stderr if self.stderr.strip() else self.stdout


class ProgressCoalescer:
    """Collapse bursts of git-style progress lines into their final state."""

    def __init__(self, markers: Sequence[str] = PROGRESS_MARKERS) -> None:
        self._markers = tuple(markers)
        self._pending: str | None = None

    def is_progress(self, line: str) -> bool:
        return any(marker in line for marker in self._markers)

    def feed(self, line: str) -> list[str]:
        """Return the lines that should be forwarded now."""

        if self.is_progress(line):
            self._pending = line
            return []
        ready: list[str] = []
        if self._pending is not None:
            ready.append(self._pending)
            self._pending = None
        ready.append(line)
        return ready

    def flush(self) -> list[str]:
        if self._pending is None:
            return []
        pending, self._pending = self._pending, None
        return [pending]


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n").strip()


async def _forward_stream(
    stream: asyncio.StreamReader,
    sink: EventSink,
    to_step: StepFactory,
    label: str,
) -> bool:
    """Forward every line of ``stream``; return ``False`` if the sink closed.

    After the sink closes the stream is still drained so the child process
    never blocks on a full pipe.
    """

    coalescer = ProgressCoalescer()
    delivering = True

    async def deliver(lines: list[str]) -> None:
        nonlocal delivering
        for line in lines:
            if not delivering:
                return
            try:
                await sink.send(to_step(line + "\n"))
            except SinkClosed:
                delivering = False

    try:
        while True:
            try:
                raw = await stream.readline()
            except ValueError as exc:
                # the reader has already discarded the oversized line
                logger.warning("Skipped oversized line on %s: %s", label, exc)
                continue
            if not raw:
                break
            await deliver(coalescer.feed(_decode(raw)))
        await deliver(coalescer.flush())
    except OSError as exc:
        logger.debug("Stopped reading %s: %s", label, exc)
    return delivering


async def run_command_with_output(
    args: Sequence[str],
    *,
    cwd: Path,
    sink: EventSink,
    to_step: StepFactory,
) -> None:
    """Run ``args`` in ``cwd`` streaming stdout and stderr line by line.

    Raises :class:`CommandError` if the process cannot start or exits with a
    non-zero status, and :class:`SinkClosed` if the consumer went away while
    the process was running.
    """

    logger.debug("Running %s in %s", " ".join(args), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STREAM_LIMIT,
        )
    except OSError as exc:
        raise CommandError(args, f"Failed to run `{' '.join(args)}`: {exc}") from exc

    assert process.stdout is not None and process.stderr is not None
    readers = (
        asyncio.create_task(_forward_stream(process.stdout, sink, to_step, "stdout")),
        asyncio.create_task(_forward_stream(process.stderr, sink, to_step, "stderr")),
    )
    try:
        returncode = await process.wait()
        delivered = await asyncio.gather(*readers)
    except asyncio.CancelledError:
        for reader in readers:
            reader.cancel()
        if process.returncode is None:
            process.kill()
        raise

    if not all(delivered):
        raise SinkClosed()
    if returncode != 0:
        raise CommandError.exited(args, returncode)


async def capture_command(args: Sequence[str], *, cwd: Path) -> CommandResult:
    """Run ``args`` to completion and return its captured output."""

    logger.debug("Capturing %s in %s", " ".join(args), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise CommandError(args, f"Failed to run `{' '.join(args)}`: {exc}") from exc

    stdout, stderr = await process.communicate()
    return CommandResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
