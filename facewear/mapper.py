"""
Native-pixel -> render-space mapping for overlay placement.

- compute_scale_factors: native resolution / render surface resolution
- to_render_rect: strict mapping, raises GeometryDegenerate on zero scale
- map_region / map_regions: per-frame mapping that skips degenerate geometry
"""
from __future__ import annotations
import logging
from typing import Iterable, List, Optional, Tuple

from facewear.errors import GeometryDegenerate
from facewear.models import FaceRegion, OverlayGeometry, RenderRect, ScaleFactors

logger = logging.getLogger(__name__)


def compute_scale_factors(native_size: Tuple[float, float],
                          render_size: Tuple[float, float]) -> ScaleFactors:
    """Return native/render per axis; zero factors when either side has no extent."""
    nw, nh = native_size
    rw, rh = render_size
    if nw <= 0 or nh <= 0 or rw <= 0 or rh <= 0:
        return ScaleFactors(scale_x=0.0, scale_y=0.0)
    return ScaleFactors(scale_x=nw / rw, scale_y=nh / rh)


def to_render_rect(region: FaceRegion,
                   scale: ScaleFactors,
                   geometry: OverlayGeometry) -> RenderRect:
    """Map one face box to the overlay rectangle in render space.

    The overlay is `width_multiplier` times the face width, centred
    horizontally over the face, `height_multiplier` times the face height, and
    starts `vertical_offset_fraction` of the face height below its top edge
    (roughly the eye line).

    Raises:
        GeometryDegenerate: scale_x or scale_y is zero or non-finite.
    """
    if not scale.is_valid:
        raise GeometryDegenerate(f"invalid scale factors {scale.scale_x}x{scale.scale_y}")

    (x0, y0), (x1, y1) = region.top_left, region.bottom_right
    face_w = (x1 - x0) / scale.scale_x
    face_h = (y1 - y0) / scale.scale_y

    overlay_w = face_w * geometry.width_multiplier
    overlay_h = face_h * geometry.height_multiplier
    overlay_x = x0 / scale.scale_x - (overlay_w - face_w) / 2
    overlay_y = y0 / scale.scale_y + face_h * geometry.vertical_offset_fraction

    return RenderRect(x=overlay_x, y=overlay_y, width=overlay_w, height=overlay_h)


def map_region(region: FaceRegion,
               scale: ScaleFactors,
               geometry: OverlayGeometry) -> Optional[RenderRect]:
    try:
        return to_render_rect(region, scale, geometry)
    except GeometryDegenerate as e:
        logger.debug(f"[mapper] skip region {region.top_left}-{region.bottom_right}: {e}")
        return None


def map_regions(regions: Iterable[FaceRegion],
                scale: ScaleFactors,
                geometry: OverlayGeometry) -> List[RenderRect]:
    """Map every region independently; degenerate ones are dropped."""
    rects: List[RenderRect] = []
    for region in regions:
        rect = map_region(region, scale, geometry)
        if rect is not None:
            rects.append(rect)
    return rects
