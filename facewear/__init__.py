"""
facewear - live sunglasses overlay on a camera feed.

Pipeline: FrameSource -> DetectionService -> CoordinateMapper -> OverlayRenderer,
driven by CaptureLoop and governed by SessionController.
"""
