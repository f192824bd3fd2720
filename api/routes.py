"""
REST endpoints for the camera session.
"""
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from facewear.errors import CameraAccessError, SessionStateError
from facewear.models import SessionState, SessionStatus
from facewear.session import SessionController

router = APIRouter(prefix="/session")
logger = logging.getLogger(__name__)


def _session(request: Request) -> SessionController:
    return request.app.state.session


async def _start(session: SessionController) -> None:
    try:
        await session.start()
    except CameraAccessError:
        logger.warning("[api] camera access failed")
        raise HTTPException(status_code=409, detail=session.error)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/status", response_model=SessionStatus)
async def session_status(request: Request):
    return _session(request).status()


@router.post("/start")
async def session_start(request: Request):
    """
    Open the camera and start the overlay loop.

    Returns 409 while the model is loading, after a model load failure, or
    when the camera cannot be opened (the error message is in `detail`).
    """
    session = _session(request)
    if session.state is SessionState.ACTIVE:
        return {"status": "already_running"}
    await _start(session)
    return {"status": "started"}


@router.post("/stop")
async def session_stop(request: Request):
    session = _session(request)
    if session.state is not SessionState.ACTIVE:
        return {"status": "not_running"}
    session.stop()
    return {"status": "stopped"}


@router.post("/toggle")
async def session_toggle(request: Request):
    session = _session(request)
    if session.state is SessionState.ACTIVE:
        session.stop()
        return {"status": "stopped"}
    await _start(session)
    return {"status": "started"}


@router.get("/snapshot")
async def session_snapshot(request: Request):
    """Latest composed frame (JPEG)."""
    jpeg = _session(request).presenter.snapshot_jpeg()
    if jpeg is None:
        raise HTTPException(status_code=404, detail="No frame available")
    return Response(content=jpeg, media_type="image/jpeg")
