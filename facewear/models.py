"""
Pydantic data models shared by the pipeline and the API.
"""
from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, ConfigDict
from typing import Optional, Tuple, Literal
import math


class FaceRegion(BaseModel):
    """Detected face box in native video-pixel coordinates."""
    model_config = ConfigDict(frozen=True)

    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "FaceRegion":
        return cls(top_left=(x, y), bottom_right=(x + w, y + h))

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]


class RenderRect(BaseModel):
    x: float
    y: float
    width: float
    height: float


class ScaleFactors(BaseModel):
    """native resolution / render-surface resolution, per axis."""
    scale_x: float
    scale_y: float

    @property
    def is_valid(self) -> bool:
        return all(
            math.isfinite(v) and v > 0
            for v in (self.scale_x, self.scale_y)
        )


class OverlayGeometry(BaseModel):
    width_multiplier: float = 1.1
    height_multiplier: float = 0.5
    vertical_offset_fraction: float = 0.2


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ACTIVE = "active"
    STOPPING = "stopping"
    ERROR = "error"


class SessionStatus(BaseModel):
    state: SessionState
    loading: bool
    camera_active: bool
    error: Optional[str] = None
    composite_mode: Literal["overlay-only", "frame-plus-overlay"] = "overlay-only"
    faces_last_frame: int = 0
