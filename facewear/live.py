"""
Live camera window with the sunglasses overlay.

Keys:
  space  start / stop the camera (disabled while the model is loading or failed)
  q      quit
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from facewear.config import Settings
from facewear.errors import CameraAccessError, ModelLoadError
from facewear.models import SessionState
from facewear.presenter import WindowPresenter
from facewear.session import SessionController

logger = logging.getLogger(__name__)

KEY_TOGGLE = ord(" ")
KEY_QUIT = ord("q")
UI_POLL_SEC = 0.01


def _idle_message(session: SessionController) -> str:
    if session.state in (SessionState.IDLE, SessionState.LOADING):
        return "Loading face detection model..."
    if session.state is SessionState.ERROR:
        return "Face detection unavailable"
    return "Press space to start the camera"


def _log_load_result(task: asyncio.Task) -> None:
    # failures are shown through session.error
    if not task.cancelled() and isinstance(task.exception(), ModelLoadError):
        logger.debug("[live] model load failed")


async def _run(settings: Settings, autostart: bool) -> None:
    presenter = WindowPresenter(settings.WINDOW_NAME, settings.render_size)
    session = SessionController(settings, presenter=presenter)
    presenter.open()
    presenter.show_message(_idle_message(session))

    # the window keeps pumping events while the model loads
    load_task = asyncio.create_task(session.load_model())
    load_task.add_done_callback(_log_load_result)
    pending_autostart = autostart
    try:
        while True:
            key = presenter.poll_key()
            if key == KEY_QUIT or not presenter.is_visible():
                break
            if pending_autostart and load_task.done():
                pending_autostart = False
                if session.state is SessionState.READY:
                    try:
                        await session.start()
                    except CameraAccessError:
                        pass
            if key == KEY_TOGGLE and session.state in (SessionState.READY, SessionState.ACTIVE):
                try:
                    await session.toggle()
                except CameraAccessError:
                    pass
            if session.state is not SessionState.ACTIVE:
                presenter.show_message(_idle_message(session), session.error)
            await asyncio.sleep(UI_POLL_SEC)
    finally:
        if not load_task.done():
            load_task.cancel()
        session.close()
        presenter.close()


def run_live_overlay(settings: Settings,
                     camera_index: Optional[int] = None,
                     autostart: bool = False) -> None:
    """
    Open a window, load the face detector, and overlay sunglasses on every
    detected face of the live camera feed until 'q' is pressed.
    """
    if camera_index is not None:
        settings = settings.model_copy(update={"CAMERA_INDEX": camera_index})
    logger.info(f"[live] camera={settings.CAMERA_INDEX} mode={settings.COMPOSITE_MODE}")
    asyncio.run(_run(settings, autostart))
