from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import cv2
import numpy as np

from .engine import Backend


class OpenCVBackend(Backend):
    """cv2.dnn runtime for tiny-yolo style models (ONNX / Darknet / Caffe)."""

    def __init__(self, cfg: Dict[str, Any]):
        model = cfg.get("model")
        if not model:
            raise ValueError("detect.model 未配置模型路径")
        model_file = Path(str(model))
        if not model_file.exists():
            raise FileNotFoundError(f"模型文件不存在: {model_file}")
        model_cfg = cfg.get("model_config") or ""
        self.net = cv2.dnn.readNet(str(model_file), str(model_cfg))
        if self.net.empty():
            raise RuntimeError(f"cv2.dnn 模型加载失败: {model_file}")
        target = (cfg.get("device") or "cpu").lower()
        if target == "cuda":
            self.net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            self.net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        if tensor.ndim != 3 or tensor.shape[2] != 3:
            raise ValueError(f"输入需要 (H,W,3)，实际为 {tensor.shape}")
        blob = np.ascontiguousarray(np.transpose(tensor, (2, 0, 1))[np.newaxis], dtype=np.float32)
        self.net.setInput(blob)
        return np.asarray(self.net.forward())

    def close(self) -> None:
        self.net = None


__all__ = ["OpenCVBackend"]
