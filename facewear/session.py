"""
Session lifecycle: Idle -> Loading -> Ready <-> Active (via Stopping), terminal Error.

The SessionController is the single owner of the camera stream, the pending
tick handle and the overlay asset. Invariants:
- `stream` is set iff state is ACTIVE
- `tick_handle` is set iff state is ACTIVE
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from facewear.capture import CaptureLoop
from facewear.config import Settings
from facewear.detection import DetectionService
from facewear.errors import CameraAccessError, ModelLoadError, SessionStateError
from facewear.frame_source import FrameSource
from facewear.models import OverlayGeometry, SessionState, SessionStatus
from facewear.presenter import HeadlessPresenter
from facewear.renderer import OverlayAsset, OverlayRenderer

logger = logging.getLogger(__name__)

MODEL_LOAD_MESSAGE = "Failed to load face detection model"
CAMERA_ACCESS_MESSAGE = "Failed to access camera"


class SessionController:
    def __init__(self,
                 settings: Settings,
                 detector: Optional[DetectionService] = None,
                 presenter: Optional[HeadlessPresenter] = None,
                 source_factory: Optional[Callable[[Settings], FrameSource]] = None,
                 asset: Optional[OverlayAsset] = None,
                 renderer: Optional[OverlayRenderer] = None):
        self.settings = settings
        self.detector = detector or DetectionService(settings)
        self.presenter = presenter or HeadlessPresenter(settings.render_size)
        self._source_factory = source_factory or FrameSource
        self.asset = asset or OverlayAsset(settings.OVERLAY_IMAGE)
        self.renderer = renderer or OverlayRenderer(settings.COMPOSITE_MODE)
        self.geometry = OverlayGeometry(
            width_multiplier=settings.WIDTH_MULTIPLIER,
            height_multiplier=settings.HEIGHT_MULTIPLIER,
            vertical_offset_fraction=settings.VERTICAL_OFFSET_FRACTION,
        )
        self.loop = CaptureLoop(self)

        self.state = SessionState.IDLE
        self.error: Optional[str] = None
        self.stream: Optional[FrameSource] = None
        self.tick_handle: Optional[asyncio.TimerHandle] = None
        self.generation = 0

        self._load_attempted = False
        self._starting = False
        self._closed = False
        self._asset_task: Optional[asyncio.Task] = None

    # ---- lifecycle ----
    async def load_model(self) -> None:
        """Load the detector (once per controller lifetime) and start decoding the overlay asset."""
        if self._load_attempted:
            return
        self._load_attempted = True
        self.state = SessionState.LOADING

        # the asset may still be decoding when the first frames are drawn
        if not self.asset.is_loaded:
            self._asset_task = asyncio.create_task(self.asset.load_async())
            self._asset_task.add_done_callback(_log_asset_result)

        try:
            await self.detector.load()
        except ModelLoadError:
            self.state = SessionState.ERROR
            self.error = MODEL_LOAD_MESSAGE
            logger.error("[session] model load failed; camera controls disabled")
            raise
        self.state = SessionState.READY
        logger.info("[session] ready")

    async def start(self) -> None:
        if self.state is not SessionState.READY or self._starting or self._closed:
            raise SessionStateError(f"cannot start camera in state '{self.state.value}'")
        self._starting = True
        source = self._source_factory(self.settings)
        try:
            await asyncio.to_thread(source.open)
        except CameraAccessError as e:
            self.error = CAMERA_ACCESS_MESSAGE
            logger.error(f"[session] camera access failed: {e}")
            raise
        finally:
            self._starting = False

        if self._closed or self.state is not SessionState.READY:
            # torn down while the camera was opening
            source.release()
            return

        self.error = None
        self.stream = source
        self.generation += 1
        self.state = SessionState.ACTIVE
        logger.info(f"[session] camera active (generation={self.generation})")
        self.loop.start(1.0 / max(1.0, float(source.fps)))

    def stop(self) -> None:
        """Release the camera, cancel the next tick and blank the surface. No-op unless active."""
        if self.state is not SessionState.ACTIVE:
            return
        self.state = SessionState.STOPPING
        self.generation += 1
        self._cancel_tick()

        stream, self.stream = self.stream, None
        if stream is not None:
            stream.release()

        self.renderer.clear()
        self.presenter.clear()
        self.loop.faces_last_frame = 0
        self.state = SessionState.READY
        logger.info("[session] camera stopped")

    async def toggle(self) -> SessionState:
        """Single start/stop control."""
        if self.state is SessionState.ACTIVE:
            self.stop()
        else:
            await self.start()
        return self.state

    def close(self) -> None:
        """Teardown: never leave a scheduled tick or an open camera behind."""
        self._closed = True
        self.stop()
        self._cancel_tick()
        stream, self.stream = self.stream, None
        if stream is not None:
            stream.release()
        self.loop.cancel_pending()
        if self._asset_task is not None and not self._asset_task.done():
            self._asset_task.cancel()
        logger.debug("[session] closed")

    # ---- loop support ----
    def replace_tick_handle(self, handle: asyncio.TimerHandle) -> None:
        """Keep exactly one pending tick: cancel the previous handle before storing the new one."""
        prev = self.tick_handle
        if prev is not None and prev is not handle:
            prev.cancel()
        self.tick_handle = handle

    def _cancel_tick(self) -> None:
        handle, self.tick_handle = self.tick_handle, None
        if handle is not None:
            handle.cancel()

    def is_current(self, token: int) -> bool:
        return self.state is SessionState.ACTIVE and token == self.generation

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self.state,
            loading=self.state in (SessionState.IDLE, SessionState.LOADING),
            camera_active=self.state is SessionState.ACTIVE,
            error=self.error,
            composite_mode=self.settings.COMPOSITE_MODE,
            faces_last_frame=self.loop.faces_last_frame,
        )


def _log_asset_result(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[session] overlay asset failed to load: {exc}")
    elif not task.result():
        logger.warning("[session] overlay asset unavailable; overlays will be skipped")
