from __future__ import annotations

from typing import Callable, Optional, Tuple

import numpy as np
import pytest

from gridsense.detect import AnchorBox, DetectorConfig

GRID = 5
ANCHORS = ((1.0, 1.5), (2.0, 1.0))
LABELS = ("cat", "dog", "bird")


def make_cfg(
    grid: int = GRID,
    anchors=ANCHORS,
    labels=LABELS,
    conf_thres: float = 0.5,
    iou_thres: float = 0.3,
    layout: str = "nhwc",
    **kwargs,
) -> DetectorConfig:
    return DetectorConfig(
        grid_size=grid,
        num_anchors=len(anchors),
        num_classes=len(labels),
        anchors=tuple(AnchorBox(w, h) for w, h in anchors),
        labels=tuple(labels),
        input_hw=(grid * 32, grid * 32),
        layout=layout,
        conf_thres=conf_thres,
        iou_thres=iou_thres,
        **kwargs,
    )


def single_box_tensor(
    cfg: DetectorConfig,
    cell: Tuple[int, int, int] = (2, 3, 1),
    offsets: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0),
    class_index: int = 1,
    background_logit: float = -20.0,
    object_logit: float = 20.0,
) -> np.ndarray:
    """[S, S, B*(5+C)] tensor with one confident detection at ``cell``."""
    s, b, k = cfg.grid_size, cfg.num_anchors, cfg.cell_size
    grid = np.zeros((s, s, b, k), dtype=np.float32)
    grid[..., 4] = background_logit
    row, col, anchor = cell
    grid[row, col, anchor, 0:4] = offsets
    grid[row, col, anchor, 4] = object_logit
    grid[row, col, anchor, 5 + class_index] = 10.0
    return grid.reshape(s, s, b * k)


@pytest.fixture
def cfg() -> DetectorConfig:
    return make_cfg()


@pytest.fixture
def cfg_factory() -> Callable[..., DetectorConfig]:
    return make_cfg


@pytest.fixture
def box_tensor() -> Callable[..., np.ndarray]:
    return single_box_tensor


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
