"""
Configuration for the live overlay pipeline.
"""
from pydantic import BaseModel
import logging
import os

COMPOSITE_MODES = ("overlay-only", "frame-plus-overlay")


def _opt_int(name: str) -> int | None:
    raw = os.getenv(name)
    return int(raw) if raw else None


class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    CAPTURE_WIDTH: int | None = _opt_int("CAPTURE_WIDTH")
    CAPTURE_HEIGHT: int | None = _opt_int("CAPTURE_HEIGHT")
    TARGET_FPS: float = float(os.getenv("TARGET_FPS", "30"))

    # Render surface size; None means "same as the native frame"
    RENDER_WIDTH: int | None = _opt_int("RENDER_WIDTH")
    RENDER_HEIGHT: int | None = _opt_int("RENDER_HEIGHT")

    OVERLAY_IMAGE: str = os.getenv("OVERLAY_IMAGE", "")
    WIDTH_MULTIPLIER: float = float(os.getenv("WIDTH_MULTIPLIER", "1.1"))
    HEIGHT_MULTIPLIER: float = float(os.getenv("HEIGHT_MULTIPLIER", "0.5"))
    VERTICAL_OFFSET_FRACTION: float = float(os.getenv("VERTICAL_OFFSET_FRACTION", "0.2"))
    COMPOSITE_MODE: str = os.getenv("COMPOSITE_MODE", "overlay-only")

    DETECTOR_BACKEND: str = os.getenv("DETECTOR_BACKEND", "opencv")
    MIN_DETECTION_CONFIDENCE: float = float(os.getenv("MIN_DETECTION_CONFIDENCE", "0.5"))
    MAX_INFLIGHT_DETECTIONS: int = int(os.getenv("MAX_INFLIGHT_DETECTIONS", "1"))

    WINDOW_NAME: str = os.getenv("WINDOW_NAME", "Sunglasses Live (space: start/stop, q: quit)")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize COMPOSITE_MODE / LOG_LEVEL, falling back to safe defaults
        mode = (self.COMPOSITE_MODE or "").strip().lower()
        if mode not in COMPOSITE_MODES:
            mode = "overlay-only"
        object.__setattr__(self, "COMPOSITE_MODE", mode)

        level = (self.LOG_LEVEL or "").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            level = "INFO"
        object.__setattr__(self, "LOG_LEVEL", level)

        object.__setattr__(self, "MAX_INFLIGHT_DETECTIONS", max(1, int(self.MAX_INFLIGHT_DETECTIONS)))
        object.__setattr__(self, "TARGET_FPS", self.TARGET_FPS if self.TARGET_FPS > 0 else 30.0)

    @property
    def render_size(self) -> tuple[int, int] | None:
        if self.RENDER_WIDTH and self.RENDER_HEIGHT:
            return int(self.RENDER_WIDTH), int(self.RENDER_HEIGHT)
        return None
