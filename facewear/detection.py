"""
Face detection with DeepFace (black-box inference service).

DeepFace is imported lazily in `load()` so tests can monkeypatch
sys.modules['deepface'] and the heavy TF stack is only pulled in when the
session actually loads its model.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Any, List, Optional

import numpy as np

from facewear.config import Settings
from facewear.errors import DetectionError, ModelLoadError
from facewear.models import FaceRegion

logger = logging.getLogger(__name__)


class DetectionService:
    def __init__(self, settings: Settings):
        self.s = settings
        self._deepface: Optional[Any] = None

    @property
    def loaded(self) -> bool:
        return self._deepface is not None

    async def load(self) -> None:
        """Import DeepFace and build the detector backend once (warm-up on a blank image)."""
        if self._deepface is not None:
            return
        backend = self.s.DETECTOR_BACKEND
        logger.info(f"[detect] loading face detector backend={backend}")
        try:
            deepface = await asyncio.to_thread(self._load_backend)
        except Exception as e:
            logger.exception("[detect] face detector load failed")
            raise ModelLoadError(f"Could not load face detector '{backend}': {e}") from e
        self._deepface = deepface
        logger.info("[detect] face detector ready")

    async def detect(self, frame: np.ndarray) -> List[FaceRegion]:
        """Detect faces on `frame` off the event loop. Raises DetectionError."""
        if self._deepface is None:
            raise DetectionError("face detector not loaded")
        try:
            dets = await asyncio.to_thread(self._extract, self._deepface, frame)
        except Exception as e:
            raise DetectionError(f"face detection failed: {e}") from e
        return self._to_regions(dets)

    def _load_backend(self):
        # importing deepface pulls in TensorFlow; runs on a worker thread
        from deepface import DeepFace
        self._extract(DeepFace, np.zeros((64, 64, 3), dtype=np.uint8))
        return DeepFace

    def _extract(self, deepface, frame: np.ndarray):
        return deepface.extract_faces(
            img_path=frame,
            detector_backend=self.s.DETECTOR_BACKEND,
            enforce_detection=False,
            align=False,
        )

    def _to_regions(self, dets) -> List[FaceRegion]:
        regions: List[FaceRegion] = []
        for d in dets or []:
            d = d or {}
            fa = d.get("facial_area") or {}
            x, y = float(fa.get("x", 0)), float(fa.get("y", 0))
            w, h = float(fa.get("w", 0)), float(fa.get("h", 0))
            if w <= 0 or h <= 0:
                continue
            # enforce_detection=False yields the whole image with confidence 0 when nothing is found
            conf = d.get("confidence", 1.0)
            try:
                conf = float(conf)
            except (TypeError, ValueError):
                conf = 1.0
            if conf < self.s.MIN_DETECTION_CONFIDENCE:
                continue
            regions.append(FaceRegion.from_xywh(x, y, w, h))
        return regions
