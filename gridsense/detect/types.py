from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from ..errors import ConfigError


@dataclass(frozen=True, slots=True)
class AnchorBox:
    width: float
    height: float


@dataclass(slots=True)
class BoxCandidate:
    """One decoded (cell, anchor) slot.

    ``center_x``/``center_y`` are offsets inside the cell in (0, 1);
    ``width``/``height`` are in grid-cell units.
    """

    grid_row: int
    grid_col: int
    anchor_index: int
    center_x: float
    center_y: float
    width: float
    height: float
    objectness: float
    class_scores: np.ndarray


@dataclass(slots=True)
class BBox:
    xmin: float
    ymin: float
    xmax: float
    ymax: float
    class_index: int
    label: str
    confidence: float

    @property
    def center(self) -> Tuple[float, float]:
        return 0.5 * (self.xmin + self.xmax), 0.5 * (self.ymin + self.ymax)

    @property
    def area(self) -> float:
        return max(0.0, self.xmax - self.xmin) * max(0.0, self.ymax - self.ymin)


@dataclass(frozen=True)
class DetectorConfig:
    grid_size: int
    num_anchors: int
    num_classes: int
    anchors: Tuple[AnchorBox, ...]
    labels: Tuple[str, ...] = ()
    input_hw: Tuple[int, int] = (416, 416)
    layout: str = "nhwc"
    conf_thres: float = 0.3
    iou_thres: float = 0.3
    per_class: bool = False
    max_det: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def cell_size(self) -> int:
        return 5 + self.num_classes

    @property
    def expected_size(self) -> int:
        return self.grid_size * self.grid_size * self.num_anchors * self.cell_size

    @property
    def scale(self) -> Tuple[float, float]:
        """Grid-to-input-pixel scale factors (scale_x, scale_y)."""
        input_h, input_w = self.input_hw
        return input_w / self.grid_size, input_h / self.grid_size

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "DetectorConfig":
        cfg = cfg or {}
        try:
            grid = int(cfg.get("grid_size", 13))
            num_classes = int(cfg.get("num_classes", 20))
            anchors = tuple(AnchorBox(float(w), float(h)) for w, h in cfg.get("anchors", []) or [])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"detect 配置无法解析: {exc}") from exc
        num_anchors = int(cfg.get("num_anchors", len(anchors)))
        if grid <= 0 or num_classes <= 0:
            raise ConfigError("grid_size / num_classes 必须为正数")
        if not anchors or len(anchors) != num_anchors:
            raise ConfigError(
                f"anchors 数量 ({len(anchors)}) 与 num_anchors ({num_anchors}) 不一致"
            )
        input_hw_cfg = cfg.get("input_hw", [416, 416])
        if not isinstance(input_hw_cfg, (list, tuple)) or len(input_hw_cfg) != 2:
            raise ConfigError("input_hw 需要形如 [height, width]")
        layout = str(cfg.get("layout", "nhwc")).lower()
        if layout not in ("nhwc", "nchw"):
            raise ConfigError(f"未知张量布局: {layout}")
        max_det = cfg.get("max_det")
        labels: List[str] = [str(x) for x in cfg.get("labels", []) or []]
        known = {
            "grid_size", "num_anchors", "num_classes", "anchors", "labels",
            "input_hw", "layout", "conf_thres", "iou_thres", "per_class", "max_det",
        }
        return cls(
            grid_size=grid,
            num_anchors=num_anchors,
            num_classes=num_classes,
            anchors=anchors,
            labels=tuple(labels),
            input_hw=(int(input_hw_cfg[0]), int(input_hw_cfg[1])),
            layout=layout,
            conf_thres=float(cfg.get("conf_thres", 0.3)),
            iou_thres=float(cfg.get("iou_thres", 0.3)),
            per_class=bool(cfg.get("per_class", False)),
            max_det=int(max_det) if max_det else None,
            extra={k: v for k, v in cfg.items() if k not in known},
        )
