from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import yaml

# tiny-yolo-v2 VOC: 13x13 网格，5 个 anchor，20 类
_VOC_LABELS = [
    "aeroplane", "bicycle", "bird", "boat", "bottle",
    "bus", "car", "cat", "chair", "cow",
    "dining table", "dog", "horse", "motorbike", "person",
    "potted plant", "sheep", "sofa", "train", "tv monitor",
]

_DEFAULTS = {
    "camera": {
        "source": 0,
        "width": 640,
        "height": 480,
        "fps_request": 30,
        "backend": "auto",
    },
    "preprocess": {
        "enabled": True,
        "chain": [
            {"name": "Resize", "params": {"width": 416, "height": 416}},
            {"name": "BGR2RGB"},
            {"name": "Normalize", "params": {"mean": 128.0, "std": 128.0}},
        ],
    },
    "detect": {
        "backend": "opencv",
        "model": "models/tiny-yolo-voc.onnx",
        "layout": "nchw",
        "input_hw": [416, 416],
        "grid_size": 13,
        "num_anchors": 5,
        "num_classes": 20,
        "anchors": [
            [1.08, 1.19],
            [3.42, 4.41],
            [6.63, 11.38],
            [9.42, 5.11],
            [16.62, 10.52],
        ],
        "labels": list(_VOC_LABELS),
        "conf_thres": 0.3,
        "iou_thres": 0.3,
        "per_class": False,
        "max_det": 100,
        "retries": 0,
        "retry_backoff_ms": 50.0,
    },
    "control": {
        "initial_interval_ms": 250.0,
        "hysteresis_ms": 10.0,
        "smoothing": 0.9,
        "min_interval_ms": 30.0,
        "max_interval_ms": 2000.0,
    },
    "runtime": {
        "workers": 2,
        "grab_frames": 128,
        "archive_dir": "frames",
        "log_level": "INFO",
    },
    "preview": {
        "show": True,
        "thickness": 2,
        "font_scale": 0.5,
    },
}


def _merge(a: dict, b: dict):
    """merge b into a (recursive)"""
    out = deepcopy(a)
    for k, v in (b or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _none_to_dict(x):
    # YAML 中空分支会解析成 None，统一换成 {}，避免 .get() 崩
    if x is None:
        return {}
    if isinstance(x, dict):
        return {k: _none_to_dict(v) for k, v in x.items()}
    return x


def _project_root() -> Path:
    here = Path(__file__).resolve()
    for p in [here, *here.parents]:
        if (p / "configs").exists():
            return p
    return Path.cwd()


def default_config() -> dict:
    return deepcopy(_DEFAULTS)


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve configuration file path relative to project root."""
    root = _project_root()
    if path:
        cfg_path = Path(path)
        if not cfg_path.is_absolute():
            cfg_path = root / cfg_path
    else:
        cfg_path = root / "configs" / "default.yaml"
    return cfg_path


def load_config(path: str | Path | None = None) -> dict:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"配置文件未找到：{cfg_path}")

    with open(cfg_path, "r", encoding="utf-8") as f:
        user_cfg = yaml.safe_load(f) or {}

    return _merge(_DEFAULTS, _none_to_dict(user_cfg))


__all__ = ["default_config", "load_config", "resolve_config_path"]
