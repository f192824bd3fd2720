import asyncio
import time

import numpy as np
import pytest

from facewear.config import Settings
from facewear.errors import CameraAccessError, DetectionError, ModelLoadError
from facewear.models import FaceRegion
from facewear.presenter import HeadlessPresenter
from facewear.renderer import OverlayAsset, OverlayRenderer
from facewear.session import SessionController


class FakeSource:
    """Stands in for FrameSource: a new 64x48 frame on every read."""
    instances = []

    def __init__(self, settings, fail=False, ready=True, fps=200.0):
        self.fail = fail
        self.ready = ready
        self.fps = fps
        self.opened = False
        self.released = False
        self.seq = 0
        self.frame = np.full((48, 64, 3), 90, dtype=np.uint8)
        FakeSource.instances.append(self)

    def open(self):
        if self.fail:
            raise CameraAccessError("no camera")
        self.opened = True

    def release(self):
        self.opened = False
        self.released = True

    @property
    def active_tracks(self):
        return 1 if self.opened else 0

    def is_ready(self):
        return self.opened and self.ready

    def latest(self):
        self.seq += 1
        return self.seq, self.frame

    @property
    def native_size(self):
        return 64, 48


class FakeDetector:
    def __init__(self, regions=None, fail_on=(), load_error=False, gate=None):
        self.regions = regions if regions is not None else [FaceRegion.from_xywh(10, 10, 20, 20)]
        self.fail_on = set(fail_on)
        self.load_error = load_error
        self.gate = gate
        self.loads = 0
        self.calls = 0

    async def load(self):
        self.loads += 1
        if self.load_error:
            raise ModelLoadError("broken model")

    async def detect(self, frame):
        self.calls += 1
        call = self.calls
        if self.gate is not None:
            await self.gate.wait()
        if call in self.fail_on:
            raise DetectionError(f"boom on call {call}")
        return list(self.regions)


class RecordingRenderer(OverlayRenderer):
    def __init__(self, composite_mode="overlay-only"):
        super().__init__(composite_mode)
        self.blits = []

    def _blit(self, img, rect):
        self.blits.append(rect)
        super()._blit(img, rect)


def opaque_asset(w=20, h=10, color=(0, 0, 255)):
    img = np.zeros((h, w, 4), dtype=np.uint8)
    img[..., :3] = color
    img[..., 3] = 255
    return OverlayAsset.from_array(img)


async def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def settings():
    return Settings(RENDER_WIDTH=None, RENDER_HEIGHT=None, COMPOSITE_MODE="overlay-only",
                    MAX_INFLIGHT_DETECTIONS=1)


@pytest.fixture
def make_session(settings):
    FakeSource.instances.clear()

    def _make(detector=None, source_factory=FakeSource, asset=None, renderer=None, presenter=None, **overrides):
        s = settings.model_copy(update=overrides) if overrides else settings
        return SessionController(
            s,
            detector=detector or FakeDetector(),
            presenter=presenter or HeadlessPresenter(s.render_size),
            source_factory=source_factory,
            asset=asset or opaque_asset(),
            renderer=renderer or RecordingRenderer(s.COMPOSITE_MODE),
        )
    return _make
