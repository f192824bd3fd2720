"""Display targets for composed frames.

- HeadlessPresenter: keeps the last composed frame (HTTP snapshot endpoint)
- WindowPresenter: OpenCV window; its on-screen image size is the render surface size
"""
from __future__ import annotations
import logging
import threading
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

PLACEHOLDER_SIZE = (640, 360)
PLACEHOLDER_BG = (42, 39, 39)   # zinc-ish dark grey (BGR)


def render_placeholder(message: str = "",
                       error: Optional[str] = None,
                       size: Tuple[int, int] = PLACEHOLDER_SIZE) -> np.ndarray:
    """Blank stage shown while the camera is off: message + optional red error line."""
    w, h = size
    img = np.full((h, w, 3), PLACEHOLDER_BG, dtype=np.uint8)
    if message:
        cv2.putText(img, message, (20, h // 2), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (200, 200, 200), 2, cv2.LINE_AA)
    if error:
        cv2.putText(img, error, (20, h // 2 + 40), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (60, 60, 240), 2, cv2.LINE_AA)
    return img


class HeadlessPresenter:
    def __init__(self, render_size: Optional[Tuple[int, int]] = None):
        self.render_size = render_size
        self._lock = threading.Lock()
        self._last: Optional[np.ndarray] = None

    def surface_size(self, native_size: Tuple[int, int]) -> Tuple[int, int]:
        return self.render_size or native_size

    def present(self, image: np.ndarray) -> None:
        with self._lock:
            self._last = image

    def clear(self) -> None:
        with self._lock:
            self._last = None

    @property
    def last_image(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._last

    def snapshot_jpeg(self, quality: int = 85) -> Optional[bytes]:
        img = self.last_image
        if img is None:
            return None
        ok, buf = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
        return buf.tobytes() if ok else None


class WindowPresenter(HeadlessPresenter):
    """Shows frames in a resizable OpenCV window."""
    def __init__(self, window_name: str, render_size: Optional[Tuple[int, int]] = None):
        super().__init__(render_size)
        self.window_name = window_name
        self._opened = False

    def open(self) -> None:
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        self._opened = True

    def close(self) -> None:
        if self._opened:
            cv2.destroyWindow(self.window_name)
            self._opened = False

    def surface_size(self, native_size: Tuple[int, int]) -> Tuple[int, int]:
        # The window may be resized by the user; follow its displayed size
        if self._opened and self.render_size is None:
            try:
                _, _, w, h = cv2.getWindowImageRect(self.window_name)
                if w > 0 and h > 0:
                    return w, h
            except cv2.error:
                logger.debug("[window] getWindowImageRect unavailable")
        return super().surface_size(native_size)

    def present(self, image: np.ndarray) -> None:
        super().present(image)
        if self._opened:
            cv2.imshow(self.window_name, image)

    def show_message(self, message: str, error: Optional[str] = None) -> None:
        self.present(render_placeholder(message, error))

    def poll_key(self) -> int:
        """Pump the GUI event queue; returns the pressed key code or -1."""
        key = cv2.waitKey(1)
        return key & 0xFF if key != -1 else -1

    def is_visible(self) -> bool:
        if not self._opened:
            return False
        try:
            return cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) >= 1
        except cv2.error:
            return False
