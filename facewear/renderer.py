"""Overlay asset & render surface.

- OverlayAsset: the single decoded BGRA overlay image (loaded once, read-only afterwards)
- OverlayRenderer: owns the BGRA render surface; clears it once per frame and
  alpha-blends the asset into each mapped rectangle

The surface is transparent in "overlay-only" mode (the live frame is blended
underneath at display time) and carries an opaque copy of the frame in
"frame-plus-overlay" mode.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from facewear.models import RenderRect

logger = logging.getLogger(__name__)


def _to_bgra(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    return img


def draw_default_sunglasses(width: int = 240, height: int = 90) -> np.ndarray:
    """Draw a plain pair of sunglasses on a transparent BGRA canvas."""
    img = np.zeros((height, width, 4), dtype=np.uint8)
    lens_w, lens_h = int(width * 0.21), int(height * 0.38)
    cy = int(height * 0.5)
    frame_col = (20, 20, 20, 255)
    lens_col = (40, 30, 25, 225)
    for cx in (int(width * 0.27), int(width * 0.73)):
        cv2.ellipse(img, (cx, cy), (lens_w, lens_h), 0, 0, 360, lens_col, -1, cv2.LINE_AA)
        cv2.ellipse(img, (cx, cy), (lens_w, lens_h), 0, 0, 360, frame_col, 4, cv2.LINE_AA)
    # bridge + temples
    cv2.line(img, (int(width * 0.45), cy - lens_h // 3), (int(width * 0.55), cy - lens_h // 3), frame_col, 4, cv2.LINE_AA)
    cv2.line(img, (2, cy - lens_h // 2), (int(width * 0.06), cy - lens_h // 2), frame_col, 4, cv2.LINE_AA)
    cv2.line(img, (int(width * 0.94), cy - lens_h // 2), (width - 3, cy - lens_h // 2), frame_col, 4, cv2.LINE_AA)
    return img


class OverlayAsset:
    """Single overlay image; `is_loaded` must be checked before every draw."""
    def __init__(self, path: str = ""):
        self.path = path
        self._image: Optional[np.ndarray] = None

    @classmethod
    def from_array(cls, img: np.ndarray) -> "OverlayAsset":
        asset = cls()
        asset._image = _to_bgra(img).copy()
        asset._image.setflags(write=False)
        return asset

    @property
    def is_loaded(self) -> bool:
        return self._image is not None

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    def load(self) -> bool:
        """Decode the image (or draw the built-in one when no path is set)."""
        if self._image is not None:
            return True
        if not self.path:
            img = draw_default_sunglasses()
        else:
            img = cv2.imread(self.path, cv2.IMREAD_UNCHANGED)
            if img is None:
                logger.error(f"[renderer] could not decode overlay image: {self.path}")
                return False
        img = _to_bgra(img)
        img.setflags(write=False)
        self._image = img
        logger.debug(f"[renderer] overlay asset loaded size={img.shape[1]}x{img.shape[0]}")
        return True

    async def load_async(self) -> bool:
        return await asyncio.to_thread(self.load)


class OverlayRenderer:
    def __init__(self, composite_mode: str = "overlay-only"):
        self.composite_mode = composite_mode
        self.surface = np.zeros((0, 0, 4), dtype=np.uint8)

    @property
    def size(self) -> Tuple[int, int]:
        h, w = self.surface.shape[:2]
        return w, h

    def resize(self, width: int, height: int) -> None:
        """Reallocate the surface when the render size changed (drops its content)."""
        width, height = max(0, int(width)), max(0, int(height))
        if (width, height) != self.size:
            self.surface = np.zeros((height, width, 4), dtype=np.uint8)

    def clear(self) -> None:
        self.surface[...] = 0

    def has_content(self) -> bool:
        return bool(self.surface.any())

    def begin_frame(self, frame: Optional[np.ndarray] = None) -> None:
        """Clear prior-frame content once; copy the frame as base layer if configured."""
        self.clear()
        if self.composite_mode != "frame-plus-overlay" or frame is None:
            return
        w, h = self.size
        if w == 0 or h == 0:
            return
        self.surface[..., :3] = cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)[..., :3]
        self.surface[..., 3] = 255

    def draw(self, rects: Sequence[RenderRect], asset: OverlayAsset) -> int:
        """Draw the asset into every rect in order. Returns the number of draw calls."""
        if not asset.is_loaded:
            logger.debug("[renderer] overlay image not yet loaded; skipping draw")
            return 0
        for rect in rects:
            logger.debug(f"[renderer] drawing overlay at x={rect.x:.1f} y={rect.y:.1f} "
                         f"w={rect.width:.1f} h={rect.height:.1f}")
            self._blit(asset.image, rect)
        return len(rects)

    def _blit(self, img: np.ndarray, rect: RenderRect) -> None:
        x, y = int(round(rect.x)), int(round(rect.y))
        w, h = int(round(rect.width)), int(round(rect.height))
        if w < 1 or h < 1:
            return
        W, H = self.size
        # clip to the surface
        dx0, dy0 = max(0, x), max(0, y)
        dx1, dy1 = min(W, x + w), min(H, y + h)
        if dx1 <= dx0 or dy1 <= dy0:
            return

        shrink = w < img.shape[1] or h < img.shape[0]
        scaled = cv2.resize(img, (w, h), interpolation=cv2.INTER_AREA if shrink else cv2.INTER_LINEAR)
        src = scaled[dy0 - y: dy1 - y, dx0 - x: dx1 - x]
        dst = self.surface[dy0:dy1, dx0:dx1]
        dst[...] = _over(src, dst)

    def compose(self, frame: Optional[np.ndarray]) -> np.ndarray:
        """Build the BGR image that is shown to the user."""
        w, h = self.size
        if w == 0 or h == 0:
            return frame.copy() if frame is not None else np.zeros((1, 1, 3), dtype=np.uint8)
        if self.composite_mode == "frame-plus-overlay":
            return self.surface[..., :3].copy()
        if frame is None:
            base = np.zeros((h, w, 4), dtype=np.uint8)
        else:
            base = _to_bgra(cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR))
            base[..., 3] = 255
        return np.ascontiguousarray(_over(self.surface, base)[..., :3])


def _over(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """Porter-Duff "over" of two BGRA uint8 images of the same shape."""
    s = src.astype(np.float32) / 255.0
    d = dst.astype(np.float32) / 255.0
    a_s = s[..., 3:4]
    a_d = d[..., 3:4]
    out_a = a_s + a_d * (1.0 - a_s)
    rgb = (s[..., :3] * a_s + d[..., :3] * a_d * (1.0 - a_s)) / np.maximum(out_a, 1e-6)
    out = np.concatenate([rgb, out_a], axis=-1)
    return np.clip(out * 255.0 + 0.5, 0, 255).astype(np.uint8)
