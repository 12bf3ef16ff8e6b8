from .contexts import ExecutionContexts
from .controller import LatencyController, ReportSmoother, SamplingState
from .pipeline import DetectionPipeline, PipelineStats, run_once
from .sinks import DetectionResult, LatestResultSink
from .token import (
    AsyncStage,
    LatencyMetadata,
    Stage,
    TaggedToken,
    chain,
    instrument,
    instrument_async,
    latency_report,
    max_latency,
    tag_source,
)

__all__ = [
    "AsyncStage",
    "DetectionPipeline",
    "DetectionResult",
    "ExecutionContexts",
    "LatencyController",
    "LatencyMetadata",
    "LatestResultSink",
    "PipelineStats",
    "ReportSmoother",
    "SamplingState",
    "Stage",
    "TaggedToken",
    "chain",
    "instrument",
    "instrument_async",
    "latency_report",
    "max_latency",
    "run_once",
    "tag_source",
]
