import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scriptforge.application import SessionService
from scriptforge.core.config import Settings
from scriptforge.core.limiter import ConcurrencyLimiter
from scriptforge.infrastructure import (
    BaselineTemplateProvider,
    CodeGenerator,
    CopyTemplate,
    ForgeInitTemplate,
    GuidanceProvider,
    NoGuidance,
    OpenAICompatibleClient,
    ProtocolGuidelines,
    TempDirWorkspaceRegistry,
)
from scriptforge.routes import forge, sessions
from scriptforge.workers.pipeline import PipelineWorker

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    generator: CodeGenerator | None = None,
    guidance: GuidanceProvider | None = None,
    template: BaselineTemplateProvider | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    owned_client: OpenAICompatibleClient | None = None
    if generator is None:
        owned_client = OpenAICompatibleClient(
            settings.llm_api_key,
            api_base=settings.llm_api_base,
            model=settings.llm_model,
            classifier_model=settings.llm_classifier_model,
            timeout=settings.llm_timeout,
        )
        generator = owned_client

    if guidance is None:
        guidance = ProtocolGuidelines(settings.guidelines_dir) if settings.guidelines_dir else NoGuidance()

    if template is None:
        if settings.base_dir:
            template = CopyTemplate(settings.base_dir)
        else:
            template = ForgeInitTemplate(forge_command=settings.forge_command, git_command=settings.git_command)

    registry = TempDirWorkspaceRegistry(settings.workspaces_root)
    limiter = ConcurrencyLimiter(settings.max_concurrency)
    worker = PipelineWorker(
        settings=settings,
        registry=registry,
        limiter=limiter,
        generator=generator,
        guidance=guidance,
        template=template,
    )
    session_service = SessionService(registry)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        sweeper: asyncio.Task[None] | None = None
        if settings.session_ttl:
            sweeper = asyncio.create_task(session_service.run_sweeper(settings.session_ttl, settings.sweep_interval))
        logger.info("Forge service ready (max_concurrency=%d)", limiter.capacity)
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweeper
            await worker.shutdown()
            if owned_client is not None:
                await owned_client.aclose()

    app = FastAPI(title="Forge Script Service", version="0.0.1", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.limiter = limiter
    app.state.worker = worker
    app.state.sessions = session_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(forge.router)
    app.include_router(sessions.router)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Forge Script Service",
                "docs": "/docs",
                "health": "/forge/sessions",
            }
        )

    return app


app = create_app()


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "scriptforge.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
