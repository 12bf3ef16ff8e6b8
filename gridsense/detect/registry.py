from typing import Any, Dict

from .engine import InferenceEngine, ThreadedEngine
from .opencv_dnn import OpenCVBackend


def build_engine(cfg: Dict[str, Any]) -> InferenceEngine:
    backend = (cfg.get("backend") or "opencv").lower()
    if backend == "opencv":
        runtime = OpenCVBackend(cfg)
    else:
        raise ValueError(f"未知推理后端: {backend}")
    return ThreadedEngine(
        runtime.infer,
        retries=int(cfg.get("retries", 0)),
        retry_backoff_ms=float(cfg.get("retry_backoff_ms", 50.0)),
        on_close=runtime.close,
    )
