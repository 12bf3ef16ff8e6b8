from .types import AnchorBox, BBox, BoxCandidate, DetectorConfig
from .decode import GridDecoder, decode
from .extract import BoxExtractor, extract, rescale_bbox
from .nms import SuppressionEngine, iou, suppress
from .engine import Backend, InferenceEngine, ThreadedEngine
from .registry import build_engine

__all__ = [
    "AnchorBox",
    "BBox",
    "BoxCandidate",
    "DetectorConfig",
    "GridDecoder",
    "decode",
    "BoxExtractor",
    "extract",
    "rescale_bbox",
    "SuppressionEngine",
    "iou",
    "suppress",
    "Backend",
    "InferenceEngine",
    "ThreadedEngine",
    "build_engine",
]
