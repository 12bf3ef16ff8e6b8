"""绘制检测框与延迟表的辅助函数。"""
from __future__ import annotations

from typing import Iterable, Sequence, Tuple

import cv2
import numpy as np

from ..detect.types import BBox

_COLOR_TABLE: Tuple[Tuple[int, int, int], ...] = (
    (255, 128, 64),
    (0, 255, 255),
    (80, 175, 76),
    (255, 0, 255),
    (0, 128, 255),
    (255, 64, 64),
    (64, 255, 64),
    (128, 128, 255),
    (255, 200, 0),
    (0, 255, 128),
)


def put_label(img: np.ndarray, org: Tuple[int, int], text: str, color=(50, 220, 50), font_scale: float = 0.6) -> None:
    cv2.putText(img, text, org, cv2.FONT_HERSHEY_SIMPLEX, font_scale, (0, 0, 0), 3, cv2.LINE_AA)
    cv2.putText(img, text, org, cv2.FONT_HERSHEY_SIMPLEX, font_scale, color, 1, cv2.LINE_AA)


def draw_boxes(
    image: np.ndarray,
    boxes: Iterable[BBox],
    thickness: int = 2,
    font_scale: float = 0.5,
) -> None:
    """在图像上绘制检测框与 "label conf"。"""
    font = cv2.FONT_HERSHEY_SIMPLEX
    thickness = max(1, int(thickness))
    h, w = image.shape[:2]
    for box in boxes:
        color = _COLOR_TABLE[box.class_index % len(_COLOR_TABLE)]
        x1 = int(max(0, box.xmin))
        y1 = int(max(0, box.ymin))
        x2 = int(min(w - 1, box.xmax))
        y2 = int(min(h - 1, box.ymax))
        if x2 <= x1 or y2 <= y1:
            continue
        cv2.rectangle(image, (x1, y1), (x2, y2), color, thickness)

        text = f"{box.label} {box.confidence:.2f}"
        (tw, th), baseline = cv2.getTextSize(text, font, font_scale, thickness)
        pad = 2
        box_top = max(0, y1 - th - baseline - pad * 2)
        cv2.rectangle(image, (x1, box_top), (x1 + tw + pad * 2, y1), color, -1)
        cv2.putText(
            image, text, (x1 + pad, max(box_top + th, pad + th)),
            font, font_scale, (255, 255, 255), max(1, thickness - 1), cv2.LINE_AA,
        )


def draw_report(
    image: np.ndarray,
    rows: Sequence[Tuple[str, float]],
    origin: Tuple[int, int] = (10, 60),
    font_scale: float = 0.5,
) -> None:
    """右对齐数值的 (stage, ms) 延迟表。"""
    x, y = origin
    step = int(22 * font_scale / 0.5)
    for name, ms in rows:
        put_label(image, (x, y), f"{name:<14}{int(round(ms)):>6d} ms", color=(0, 255, 255), font_scale=font_scale)
        y += step
