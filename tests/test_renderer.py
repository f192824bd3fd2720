import asyncio

import cv2
import numpy as np
import pytest

from conftest import opaque_asset
from facewear.models import RenderRect
from facewear.renderer import OverlayAsset, OverlayRenderer, draw_default_sunglasses


def _renderer(w=100, h=80, mode="overlay-only"):
    r = OverlayRenderer(mode)
    r.resize(w, h)
    return r


@pytest.mark.parametrize("n", [0, 1, 4])
def test_one_draw_call_per_rect(n, monkeypatch):
    r = _renderer()
    calls = []
    monkeypatch.setattr(r, "_blit", lambda img, rect: calls.append(rect))
    rects = [RenderRect(x=5 * i, y=5, width=10, height=5) for i in range(n)]
    assert r.draw(rects, opaque_asset()) == n
    assert calls == rects


def test_unloaded_asset_is_a_noop():
    r = _renderer()
    assert r.draw([RenderRect(x=0, y=0, width=10, height=10)], OverlayAsset("does-not-exist.png")) == 0
    assert not r.has_content()


def test_draw_scales_asset_into_rect():
    r = _renderer()
    r.draw([RenderRect(x=10, y=20, width=30, height=10)], opaque_asset(color=(0, 0, 255)))
    assert tuple(r.surface[25, 20]) == (0, 0, 255, 255)
    assert tuple(r.surface[25, 9]) == (0, 0, 0, 0)
    assert tuple(r.surface[30, 20]) == (0, 0, 0, 0)
    assert r.surface[20:30, 10:40, 3].min() == 255


def test_rects_outside_the_surface_are_clipped():
    r = _renderer(50, 40)
    r.draw([RenderRect(x=-10, y=-5, width=20, height=10),
            RenderRect(x=45, y=35, width=20, height=20),
            RenderRect(x=500, y=500, width=10, height=10)], opaque_asset())
    assert r.surface[0:5, 0:10, 3].min() == 255
    assert r.surface[35:40, 45:50, 3].min() == 255
    assert r.surface.shape == (40, 50, 4)


def test_begin_frame_clears_previous_overlay_once():
    r = _renderer()
    r.draw([RenderRect(x=0, y=0, width=20, height=10)], opaque_asset())
    assert r.has_content()
    r.begin_frame(np.zeros((80, 100, 3), dtype=np.uint8))
    assert not r.has_content()


def test_clear_blanks_surface():
    r = _renderer()
    r.surface[...] = 7
    r.clear()
    assert not r.has_content()


def test_frame_plus_overlay_copies_frame_as_base_layer():
    r = _renderer(40, 30, mode="frame-plus-overlay")
    frame = np.full((60, 80, 3), 120, dtype=np.uint8)
    r.begin_frame(frame)
    assert (r.surface[..., :3] == 120).all()
    assert (r.surface[..., 3] == 255).all()

    r.draw([RenderRect(x=0, y=0, width=10, height=10)], opaque_asset(color=(255, 0, 0)))
    out = r.compose(None)
    assert out.shape == (30, 40, 3)
    assert tuple(out[5, 5]) == (255, 0, 0)
    assert tuple(out[20, 30]) == (120, 120, 120)


def test_overlay_only_composes_over_live_frame():
    r = _renderer(40, 30)
    frame = np.full((30, 40, 3), 60, dtype=np.uint8)
    out = r.compose(frame)
    assert (out == 60).all()

    r.draw([RenderRect(x=0, y=0, width=10, height=10)], opaque_asset(color=(0, 255, 0)))
    out = r.compose(frame)
    assert tuple(out[5, 5]) == (0, 255, 0)
    assert tuple(out[20, 30]) == (60, 60, 60)


def test_semi_transparent_asset_blends():
    img = np.zeros((4, 4, 4), dtype=np.uint8)
    img[..., 2] = 255
    img[..., 3] = 128
    r = _renderer(4, 4)
    r.draw([RenderRect(x=0, y=0, width=4, height=4)], OverlayAsset.from_array(img))
    out = r.compose(np.zeros((4, 4, 3), dtype=np.uint8))
    assert 120 <= out[1, 1, 2] <= 135


def test_resize_reallocates_only_on_change():
    r = _renderer(10, 10)
    r.surface[...] = 1
    r.resize(10, 10)
    assert r.has_content()
    r.resize(20, 5)
    assert r.size == (20, 5)
    assert not r.has_content()


def test_asset_loads_png_with_alpha(tmp_path):
    path = tmp_path / "sunglass.png"
    img = np.zeros((12, 30, 4), dtype=np.uint8)
    img[..., 3] = 200
    assert cv2.imwrite(str(path), img)

    asset = OverlayAsset(str(path))
    assert not asset.is_loaded
    assert asyncio.run(asset.load_async()) is True
    assert asset.is_loaded
    assert asset.image.shape == (12, 30, 4)
    assert not asset.image.flags.writeable


def test_asset_without_alpha_becomes_opaque_bgra(tmp_path):
    path = tmp_path / "plain.png"
    cv2.imwrite(str(path), np.full((5, 5, 3), 30, dtype=np.uint8))
    asset = OverlayAsset(str(path))
    assert asset.load()
    assert asset.image.shape == (5, 5, 4)
    assert (asset.image[..., 3] == 255).all()


def test_missing_asset_stays_unloaded(tmp_path):
    asset = OverlayAsset(str(tmp_path / "nope.png"))
    assert asset.load() is False
    assert not asset.is_loaded


def test_default_asset_is_drawn_sunglasses():
    asset = OverlayAsset()
    assert asset.load()
    img = asset.image
    assert img.shape[2] == 4
    assert img[..., 3].max() == 255
    assert img[0, img.shape[1] // 2, 3] == 0
    assert draw_default_sunglasses(100, 40).shape == (40, 100, 4)
