from __future__ import annotations

from fastapi import APIRouter, Query, Request
from sse_starlette import EventSourceResponse

from scriptforge.core.events import EventSink, stream_events
from scriptforge.core.schema import FixRequest, ForgeRequest
from scriptforge.workers.pipeline import PipelineWorker

router = APIRouter(prefix="/forge", tags=["forge"])


def _open_stream(request: Request) -> tuple[PipelineWorker, EventSink]:
    worker: PipelineWorker = request.app.state.worker
    sink = EventSink(request.app.state.settings.channel_capacity)
    return worker, sink


def _event_stream(sink: EventSink) -> EventSourceResponse:
    return EventSourceResponse(stream_events(sink), sep="\n")


@router.get("/stream")
async def stream_generation(
    request: Request,
    intent: str = Query(...),
    from_address: str = Query(...),
    rpc_url: str | None = Query(default=None),
    session_id: str | None = Query(default=None),
) -> EventSourceResponse:
    worker, sink = _open_stream(request)
    payload = ForgeRequest(intent=intent, from_address=from_address, rpc_url=rpc_url, session_id=session_id)
    worker.start_generation(payload, sink)
    return _event_stream(sink)


@router.get("/fix")
async def stream_fix(
    request: Request,
    error: str = Query(...),
    temp_dir: str = Query(...),
    rpc_url: str | None = Query(default=None),
) -> EventSourceResponse:
    worker, sink = _open_stream(request)
    payload = FixRequest(error=error, temp_dir=temp_dir, rpc_url=rpc_url)
    worker.start_fix(payload, sink)
    return _event_stream(sink)
