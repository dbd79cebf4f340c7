from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from scriptforge.application import SessionService
from scriptforge.core.errors import SessionBusy, SessionDocumentError, SessionNotFound

router = APIRouter(prefix="/forge/sessions", tags=["sessions"])


def _service(request: Request) -> SessionService:
    return request.app.state.sessions


@router.get("")
async def list_sessions(request: Request) -> dict:
    items = await _service(request).list_sessions()
    return {"items": items}


@router.get("/history")
async def get_session_history(request: Request, temp_dir: str = Query(...)) -> dict:
    try:
        return await _service(request).get_history(temp_dir)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SessionDocumentError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.delete("")
async def delete_session(request: Request, temp_dir: str = Query(...)) -> dict:
    try:
        await _service(request).evict(temp_dir)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except SessionBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"temp_dir": temp_dir, "deleted": True}
