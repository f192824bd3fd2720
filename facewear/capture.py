"""
Capture loop: FrameSource -> DetectionService -> CoordinateMapper -> OverlayRenderer.

One tick per frame-delivery opportunity, scheduled on the asyncio loop with a
cancellable TimerHandle stored on the session (at most one pending tick).
Detection runs as a task that may resolve several ticks later; its result is
applied only if the session generation it was submitted under is still
current, otherwise it is discarded.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional, Set

import numpy as np

from facewear.mapper import compute_scale_factors, map_regions
from facewear.models import ScaleFactors, SessionState

if TYPE_CHECKING:
    from facewear.session import SessionController

logger = logging.getLogger(__name__)


class CaptureLoop:
    def __init__(self, session: "SessionController"):
        self.session = session
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._last_seq: Optional[int] = None
        self._inflight: Set[asyncio.Task] = set()
        self.interval = 0.0
        self.ticks = 0
        self.faces_last_frame = 0
        self.scale = ScaleFactors(scale_x=0.0, scale_y=0.0)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    # ---- scheduling ----
    def start(self, interval: float) -> None:
        """Begin ticking; must be called from the event loop thread."""
        self._loop = asyncio.get_running_loop()
        self.interval = max(0.0, float(interval))
        self._last_seq = None
        self.faces_last_frame = 0
        self._schedule(0.0)

    def _schedule(self, delay: float) -> None:
        handle = self._loop.call_later(delay, self._tick)
        self.session.replace_tick_handle(handle)

    def cancel_pending(self) -> None:
        """Cancel in-flight detection tasks (teardown only)."""
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    # ---- tick ----
    def _tick(self) -> None:
        s = self.session
        if s.state is not SessionState.ACTIVE:
            return
        self.ticks += 1
        try:
            self._run_tick()
        except Exception:
            logger.exception("[loop] tick failed")
        finally:
            # the next tick is scheduled no matter what happened in this one
            if s.state is SessionState.ACTIVE:
                self._schedule(self.interval)

    def _run_tick(self) -> None:
        s = self.session
        source = s.stream
        if source is None or not source.is_ready():
            return
        seq, frame = source.latest()
        if frame is None or seq == self._last_seq:
            return
        self._last_seq = seq

        native = (frame.shape[1], frame.shape[0])
        render = s.presenter.surface_size(native)
        self.scale = compute_scale_factors(native, render)
        s.renderer.resize(*render)

        if len(self._inflight) >= s.settings.MAX_INFLIGHT_DETECTIONS:
            # detector still busy: keep the current overlay, show the new frame
            s.presenter.present(s.renderer.compose(frame))
            return

        task = self._loop.create_task(self._detect_and_draw(frame, s.generation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _detect_and_draw(self, frame: np.ndarray, token: int) -> None:
        s = self.session
        try:
            regions = await s.detector.detect(frame)
        except Exception as e:
            logger.warning(f"[loop] face detection error, treating as no faces: {e}")
            regions = []

        if not s.is_current(token):
            logger.debug(f"[loop] discarding detection result of generation {token}")
            return

        # scale of the latest tick: it matches the surface size, which may have changed while detecting
        rects = map_regions(regions, self.scale, s.geometry)
        s.renderer.begin_frame(frame)
        s.renderer.draw(rects, s.asset)
        self.faces_last_frame = len(rects)
        _, live = s.stream.latest() if s.stream is not None else (None, frame)
        s.presenter.present(s.renderer.compose(live if live is not None else frame))
