from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import aclosing, nullcontext
from pathlib import Path
from typing import Any, Awaitable

from scriptforge.core.config import Settings
from scriptforge.core.dependencies import install_component, load_remappings
from scriptforge.core.errors import ForgeError, SimulationFailed, SinkClosed
from scriptforge.core.events import EventSink
from scriptforge.core.fences import extract_install_components, extract_source, parse_fenced_blocks
from scriptforge.core.limiter import ConcurrencyLimiter
from scriptforge.core.prompts import build_fix_prompt, build_generation_prompt
from scriptforge.core.schema import (
    STEP_ERROR,
    STEP_FIXING,
    STEP_GENERATING,
    STEP_GUIDELINES,
    STEP_INITIALIZING,
    STEP_INSTALLING,
    STEP_SESSION,
    STEP_SIMULATING,
    ChatMessage,
    FixRequest,
    ForgeRequest,
)
from scriptforge.core.sessions import load_session, save_session
from scriptforge.core.simulation import dumps_transactions, load_transactions, simulate
from scriptforge.core.workspaces import list_files, list_libraries, read_script, write_script
from scriptforge.infrastructure import BaselineTemplateProvider, CodeGenerator, Guidance, GuidanceProvider, WorkspaceRegistry

logger = logging.getLogger(__name__)


class PipelineWorker:
    """Runs generate and fix pipelines, one task per request.

    Every pipeline reports through its own :class:`EventSink` and always
    closes it, whichever way the run ends.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        registry: WorkspaceRegistry,
        limiter: ConcurrencyLimiter,
        generator: CodeGenerator,
        guidance: GuidanceProvider,
        template: BaselineTemplateProvider,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._limiter = limiter
        self._generator = generator
        self._guidance = guidance
        self._template = template
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # task management
    # ------------------------------------------------------------------
    def _spawn(self, coro: Awaitable[None], name: str) -> asyncio.Task[None]:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start_generation(self, request: ForgeRequest, sink: EventSink) -> asyncio.Task[None]:
        return self._spawn(self.run_generation(request, sink), "forge-generate")

    def start_fix(self, request: FixRequest, sink: EventSink) -> asyncio.Task[None]:
        return self._spawn(self.run_fix(request, sink), "forge-fix")

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # entry points
    # ------------------------------------------------------------------
    async def run_generation(self, request: ForgeRequest, sink: EventSink) -> None:
        await self._guarded(self._generate(request, sink), sink, "generation")

    async def run_fix(self, request: FixRequest, sink: EventSink) -> None:
        await self._guarded(self._fix(request, sink), sink, "fix")

    async def _guarded(self, pipeline: Awaitable[None], sink: EventSink, label: str) -> None:
        try:
            await pipeline
        except SinkClosed:
            logger.info("Client disconnected; %s pipeline stopped", label)
        except ForgeError as exc:
            logger.warning("%s pipeline failed: %s", label.capitalize(), exc)
            await self._report(sink, str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure in %s pipeline", label)
            await self._report(sink, str(exc) or exc.__class__.__name__)
        finally:
            await sink.close()

    @staticmethod
    async def _report(sink: EventSink, message: str) -> None:
        try:
            await sink.emit(STEP_ERROR, message)
        except SinkClosed:
            logger.debug("Error record not delivered, client already gone")

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------
    async def _generate(self, request: ForgeRequest, sink: EventSink) -> None:
        async with self._limiter.permit():
            session_id = request.session_id or uuid.uuid4().hex
            workspace = await self._registry.allocate(session_id)
            async with workspace.lock:
                root = workspace.path
                await sink.emit(STEP_SESSION, workspace.key)

                await sink.emit(STEP_INITIALIZING, str(root))
                await self._template.materialize(root, sink)
                remappings = await load_remappings(root, forge_command=self._settings.forge_command)

                guidance = await self._fetch_guidance(request.intent, sink)

                messages: list[ChatMessage] = []
                prompt = build_generation_prompt(request.from_address, request.intent, guidance.text, remappings)
                response = await self._converse(messages, prompt, sink)

                await sink.emit(STEP_INSTALLING, "Parsing dependencies...\n")
                await save_session(root, messages)
                await self._apply(root, response, request.rpc_url, sink)
                workspace.touch()

    async def _fetch_guidance(self, intent: str, sink: EventSink) -> Guidance:
        protocols = self._guidance.available_protocols()
        if not protocols:
            return Guidance()
        await sink.emit(STEP_GUIDELINES, f"Matching intent against {len(protocols)} protocols\n")
        guidance = await self._guidance.get_guideline(self._generator, intent)
        if guidance.protocols:
            await sink.emit(STEP_GUIDELINES, f"Using guidelines: {', '.join(guidance.protocols)}\n")
        else:
            await sink.emit(STEP_GUIDELINES, "No matching guidelines\n")
        return guidance

    # ------------------------------------------------------------------
    # fix
    # ------------------------------------------------------------------
    async def _fix(self, request: FixRequest, sink: EventSink) -> None:
        admission: Any = self._limiter.permit() if self._settings.limit_fix else nullcontext()
        async with admission:
            workspace = await self._registry.lookup(request.temp_dir)
            async with workspace.lock:
                root = workspace.path
                session = await load_session(root)
                files = await asyncio.to_thread(list_files, root)
                await sink.emit(
                    STEP_FIXING,
                    f"Resuming session with {len(session.messages)} turns. Files: {', '.join(files)}\n",
                )

                remappings = await load_remappings(root, forge_command=self._settings.forge_command)
                libraries = await asyncio.to_thread(list_libraries, root)
                original_code = await read_script(root)

                messages = list(session.messages)
                prompt = build_fix_prompt(request.error, remappings, libraries, original_code)
                response = await self._converse(messages, prompt, sink)

                await save_session(root, messages)
                await self._apply(root, response, request.rpc_url, sink)
                workspace.touch()

    # ------------------------------------------------------------------
    # shared stages
    # ------------------------------------------------------------------
    async def _converse(self, messages: list[ChatMessage], prompt: str, sink: EventSink) -> str:
        """Send ``prompt`` and stream the answer; both turns join ``messages``."""

        messages.append(ChatMessage(role="user", content=prompt))
        chunks: list[str] = []
        async with aclosing(self._generator.stream_chat(list(messages))) as stream:
            async for chunk in stream:
                chunks.append(chunk)
                await sink.emit(STEP_GENERATING, chunk)
        response = "".join(chunks)
        messages.append(ChatMessage(role="assistant", content=response))
        return response

    async def _apply(self, root: Path, response: str, rpc_url: str | None, sink: EventSink) -> None:
        """Extract, install, materialise and simulate a generated script."""

        blocks = parse_fenced_blocks(response)
        source = extract_source(blocks)

        for component in extract_install_components(blocks):
            await install_component(
                root,
                component,
                sink,
                forge_command=self._settings.forge_command,
                npm_command=self._settings.npm_command,
            )

        await write_script(root, source)

        await sink.emit(STEP_SIMULATING, "Compiling script...\n")
        result = await simulate(
            root,
            rpc_url or self._settings.default_rpc_url,
            forge_command=self._settings.forge_command,
        )
        if not result.ok:
            raise SimulationFailed(result.diagnostics)

        transactions = await load_transactions(root, self._settings.chain_id)
        logger.info("Simulation of %s produced %d transactions", root, len(transactions))
        await sink.emit(STEP_SIMULATING, dumps_transactions(transactions))
