from __future__ import annotations

from typing import Iterable, List, Sequence

import numpy as np

from .types import BBox, BoxCandidate, DetectorConfig


def _label_for(labels: Sequence[str], class_index: int) -> str:
    if 0 <= class_index < len(labels):
        return labels[class_index]
    return str(class_index)


def extract(
    candidates: Iterable[BoxCandidate],
    threshold: float,
    scale_x: float,
    scale_y: float,
    labels: Sequence[str] = (),
) -> List[BBox]:
    """Keep candidates with ``objectness * max(class_scores) >= threshold``.

    Grid-relative geometry is mapped to input pixels; output order follows
    the candidate order and is not sorted.
    """
    boxes: List[BBox] = []
    for cand in candidates:
        scores = np.asarray(cand.class_scores)
        class_index = int(np.argmax(scores))
        confidence = float(cand.objectness) * float(scores[class_index])
        if not confidence >= threshold:  # NaN 置信度同样丢弃
            continue
        cx = (cand.grid_col + cand.center_x) * scale_x
        cy = (cand.grid_row + cand.center_y) * scale_y
        half_w = 0.5 * cand.width * scale_x
        half_h = 0.5 * cand.height * scale_y
        boxes.append(
            BBox(
                xmin=cx - half_w,
                ymin=cy - half_h,
                xmax=cx + half_w,
                ymax=cy + half_h,
                class_index=class_index,
                label=_label_for(labels, class_index),
                confidence=confidence,
            )
        )
    return boxes


def rescale_bbox(box: BBox, sx: float, sy: float) -> BBox:
    """Map a box from network-input pixels to another image size."""
    return BBox(
        xmin=box.xmin * sx,
        ymin=box.ymin * sy,
        xmax=box.xmax * sx,
        ymax=box.ymax * sy,
        class_index=box.class_index,
        label=box.label,
        confidence=box.confidence,
    )


class BoxExtractor:
    def __init__(self, cfg: DetectorConfig) -> None:
        self.threshold = cfg.conf_thres
        self.scale_x, self.scale_y = cfg.scale
        self.labels = cfg.labels

    def __call__(self, candidates: Iterable[BoxCandidate]) -> List[BBox]:
        return extract(candidates, self.threshold, self.scale_x, self.scale_y, self.labels)


__all__ = ["BoxExtractor", "extract", "rescale_bbox"]
