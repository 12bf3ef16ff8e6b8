"""Exception hierarchy shared by the decoder, engines and the pipeline."""
from __future__ import annotations


class GridsenseError(Exception):
    """Base class for all gridsense exceptions."""


class DecodeError(GridsenseError):
    """Raw detector tensor does not match the configured grid geometry."""


class ConfigError(GridsenseError):
    """Configuration is missing or inconsistent."""


class InferenceError(GridsenseError):
    """The inference engine failed or timed out for one frame."""


class CaptureError(GridsenseError):
    """The capture source is gone; the pipeline cannot continue."""


__all__ = [
    "GridsenseError",
    "DecodeError",
    "ConfigError",
    "InferenceError",
    "CaptureError",
]
