"""YOLOv2-style grid output decoding."""
from __future__ import annotations

from typing import List

import numpy as np

from ..errors import DecodeError
from .types import BoxCandidate, DetectorConfig


def sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def softmax(logits: np.ndarray) -> np.ndarray:
    """Softmax over the last axis, shifted by the per-row max logit."""
    shifted = logits - logits.max(axis=-1, keepdims=True)
    e = np.exp(shifted)
    return e / e.sum(axis=-1, keepdims=True)


def reshape_raw(raw: np.ndarray, cfg: DetectorConfig) -> np.ndarray:
    """Return the raw tensor as float64 ``[S, S, B, 5+C]``."""
    arr = np.asarray(raw, dtype=np.float64)
    if arr.size != cfg.expected_size:
        raise DecodeError(
            f"检测输出长度 {arr.size} 与网格 S={cfg.grid_size} B={cfg.num_anchors} "
            f"C={cfg.num_classes} 期望的 {cfg.expected_size} 不一致"
        )
    s, b, k = cfg.grid_size, cfg.num_anchors, cfg.cell_size
    if cfg.layout == "nchw":
        # [1, B*(5+C), S, S] -> [S, S, B*(5+C)]
        arr = arr.reshape(b * k, s, s).transpose(1, 2, 0)
    return np.ascontiguousarray(arr).reshape(s, s, b, k)


def decode(raw: np.ndarray, cfg: DetectorConfig) -> List[BoxCandidate]:
    grid = reshape_raw(raw, cfg)
    s = cfg.grid_size

    offsets = sigmoid(grid[..., 0:2])
    anchor_wh = np.array([[a.width, a.height] for a in cfg.anchors], dtype=np.float64)
    with np.errstate(over="ignore"):
        sizes = anchor_wh[np.newaxis, np.newaxis, :, :] * np.exp(grid[..., 2:4])
    objectness = sigmoid(grid[..., 4])
    class_probs = softmax(grid[..., 5:])

    candidates: List[BoxCandidate] = []
    for row in range(s):
        for col in range(s):
            for b in range(cfg.num_anchors):
                candidates.append(
                    BoxCandidate(
                        grid_row=row,
                        grid_col=col,
                        anchor_index=b,
                        center_x=float(offsets[row, col, b, 0]),
                        center_y=float(offsets[row, col, b, 1]),
                        width=float(sizes[row, col, b, 0]),
                        height=float(sizes[row, col, b, 1]),
                        objectness=float(objectness[row, col, b]),
                        class_scores=class_probs[row, col, b],
                    )
                )
    return candidates


class GridDecoder:
    """Callable stage: raw tensor -> ``S*S*B`` candidates."""

    def __init__(self, cfg: DetectorConfig) -> None:
        self.cfg = cfg

    def __call__(self, raw: np.ndarray) -> List[BoxCandidate]:
        return decode(raw, self.cfg)


__all__ = ["GridDecoder", "decode", "reshape_raw", "sigmoid", "softmax"]
