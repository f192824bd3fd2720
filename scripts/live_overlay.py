"""Run the live sunglasses overlay window.

Usage:
    uvicorn api.main:app --reload          # (separate, for the HTTP API)
    python scripts/live_overlay.py         # (to see the camera overlay window)
    python scripts/live_overlay.py --mode frame-plus-overlay --overlay assets/sunglass.png

Press space to start/stop the camera, 'q' to quit the window.
"""
from __future__ import annotations
import argparse
import logging

from facewear.config import COMPOSITE_MODES, Settings
from facewear.live import run_live_overlay


def main():
    p = argparse.ArgumentParser(description="Overlay sunglasses on detected faces in a live camera feed")
    p.add_argument("--camera", type=int, default=None, help="Camera index (default: CAMERA_INDEX)")
    p.add_argument("--overlay", default=None, help="Overlay PNG with alpha (default: built-in sunglasses)")
    p.add_argument("--mode", choices=COMPOSITE_MODES, default=None, help="Composite mode")
    p.add_argument("--detector", default=None, help="DeepFace detector backend (e.g. opencv, ssd, mediapipe)")
    p.add_argument("--autostart", action="store_true", help="Start the camera as soon as the model is ready")
    p.add_argument("--debug", action="store_true", help="Verbose debug output")
    args = p.parse_args()

    overrides = {}
    if args.overlay is not None:
        overrides["OVERLAY_IMAGE"] = args.overlay
    if args.mode is not None:
        overrides["COMPOSITE_MODE"] = args.mode
    if args.detector is not None:
        overrides["DETECTOR_BACKEND"] = args.detector
    if args.debug:
        overrides["LOG_LEVEL"] = "DEBUG"

    settings = Settings(**overrides)
    logging.basicConfig(level=settings.LOG_LEVEL)
    run_live_overlay(settings, camera_index=args.camera, autostart=args.autostart)


if __name__ == '__main__':
    main()
