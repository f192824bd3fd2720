"""
Error taxonomy.

Only session-lifecycle errors (ModelLoadError, CameraAccessError) reach the
user. DetectionError and GeometryDegenerate are per-frame and absorbed by the
capture loop / coordinate mapper.
"""


class FacewearError(RuntimeError):
    """Base class for pipeline errors."""


class ModelLoadError(FacewearError):
    """The face detection model could not be loaded. Fatal for the session."""


class CameraAccessError(FacewearError):
    """The camera could not be opened (no device, permission denied)."""


class DetectionError(FacewearError):
    """Face detection failed for a single frame."""


class GeometryDegenerate(FacewearError, ValueError):
    """Scale factors are zero or non-finite; no render geometry can be produced."""


class SessionStateError(FacewearError):
    """A lifecycle call was made in a state that does not allow it."""
