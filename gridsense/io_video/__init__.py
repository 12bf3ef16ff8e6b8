from .capture import Frame, ImageFileSource, VideoSource, build_source
from .fps_meter import FPSMeter
from .grabber import FrameGrabber, save_frames

__all__ = [
    "FPSMeter",
    "Frame",
    "FrameGrabber",
    "ImageFileSource",
    "VideoSource",
    "build_source",
    "save_frames",
]
