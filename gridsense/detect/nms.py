from __future__ import annotations

from typing import List, Optional, Sequence

from .types import BBox, DetectorConfig


def iou(a: BBox, b: BBox) -> float:
    inter_w = max(0.0, min(a.xmax, b.xmax) - max(a.xmin, b.xmin))
    inter_h = max(0.0, min(a.ymax, b.ymax) - max(a.ymin, b.ymin))
    inter_area = inter_w * inter_h
    denom = a.area + b.area - inter_area
    if denom <= 0.0:
        return 0.0
    return float(inter_area / denom)


def suppress(
    boxes: Sequence[BBox],
    iou_threshold: float,
    per_class: bool = False,
    max_det: Optional[int] = None,
) -> List[BBox]:
    """Greedy non-max suppression.

    Boxes are visited by descending confidence (ties keep input order). A box
    is dropped when its IoU with an already kept box is at least
    ``iou_threshold``. With ``per_class`` only same-class pairs compete.
    """
    # sorted() 是稳定排序，reverse=True 时同分保持原顺序
    order = sorted(boxes, key=lambda box: box.confidence, reverse=True)
    keep: List[BBox] = []
    for box in order:
        if max_det is not None and len(keep) >= max_det:
            break
        overlapped = False
        for kept in keep:
            if per_class and kept.class_index != box.class_index:
                continue
            if iou(box, kept) >= iou_threshold:
                overlapped = True
                break
        if not overlapped:
            keep.append(box)
    return keep


class SuppressionEngine:
    def __init__(self, cfg: DetectorConfig) -> None:
        self.iou_threshold = cfg.iou_thres
        self.per_class = cfg.per_class
        self.max_det = cfg.max_det

    def __call__(self, boxes: Sequence[BBox]) -> List[BBox]:
        return suppress(boxes, self.iou_threshold, self.per_class, self.max_det)


__all__ = ["SuppressionEngine", "iou", "suppress"]
