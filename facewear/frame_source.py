"""
Live camera stream wrapper.

A background grabber thread keeps only the latest frame, so the capture loop
never blocks on the device and can tell whether a new frame was delivered
since its previous tick (frame sequence number).
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional, Tuple

import cv2
import numpy as np

from facewear.config import Settings
from facewear.errors import CameraAccessError

logger = logging.getLogger(__name__)


class FrameSource:
    """Owns one cv2.VideoCapture while open."""
    JOIN_TIMEOUT_SEC = 1.0

    def __init__(self, settings: Settings):
        self.s = settings
        self._cap = None
        self._thread: Optional[threading.Thread] = None
        self._run = False
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._seq = 0
        self._grabbing = False
        self._handoff = None
        self._fps = float(settings.TARGET_FPS)

    # ---- lifecycle ----
    def open(self) -> None:
        if self._cap is not None:
            return
        cam_idx = self.s.CAMERA_INDEX
        cap = cv2.VideoCapture(cam_idx)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise CameraAccessError(f"Could not open camera index {cam_idx}")

        if self.s.CAPTURE_WIDTH and self.s.CAPTURE_HEIGHT:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.s.CAPTURE_WIDTH)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.s.CAPTURE_HEIGHT)
        fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        self._fps = float(fps) if fps and fps > 0 else float(self.s.TARGET_FPS)

        self._cap = cap
        self._run = True
        self._grabbing = True
        self._thread = threading.Thread(target=self._grab_loop, name="frame-grabber", daemon=True)
        self._thread.start()
        logger.info(f"[camera] opened index={cam_idx} fps={self._fps:.1f}")

    def release(self) -> None:
        """Stop the grabber and release the device. Safe to call repeatedly."""
        with self._lock:
            self._run = False
            self._frame = None
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.JOIN_TIMEOUT_SEC)
        with self._lock:
            cap, self._cap = self._cap, None
            handoff = cap is not None and self._grabbing
            if handoff:
                # still blocked in read(): the grabber releases the device on exit
                self._handoff = cap
        if cap is None:
            return
        if handoff:
            logger.warning("[camera] frame grabber still reading; device released when it returns")
        else:
            cap.release()
            logger.info("[camera] released")

    # ---- state ----
    @property
    def active_tracks(self) -> int:
        return 1 if self._cap is not None else 0

    @property
    def fps(self) -> float:
        return self._fps

    def is_ready(self) -> bool:
        """A decoded frame with valid dimensions is available."""
        with self._lock:
            frame = self._frame
        return frame is not None and frame.ndim >= 2 and frame.shape[0] > 0 and frame.shape[1] > 0

    def latest(self) -> Tuple[int, Optional[np.ndarray]]:
        with self._lock:
            return self._seq, self._frame

    @property
    def native_size(self) -> Tuple[int, int]:
        with self._lock:
            frame = self._frame
        if frame is None:
            return 0, 0
        h, w = frame.shape[:2]
        return w, h

    # ---- grabber ----
    def _grab_loop(self) -> None:
        cap = self._cap
        failures = 0
        while self._run and cap is not None:
            ok, frame = cap.read()
            if not ok or frame is None:
                failures += 1
                if failures == 1 or failures % 100 == 0:
                    logger.warning(f"[camera] frame read failed (count={failures})")
                time.sleep(0.01)
                continue
            failures = 0
            with self._lock:
                if not self._run:
                    break
                self._frame = frame
                self._seq += 1
        with self._lock:
            self._grabbing = False
            cap, self._handoff = self._handoff, None
        if cap is not None:
            cap.release()
            logger.info("[camera] released")
