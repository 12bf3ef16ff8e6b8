from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict, List, Sequence

import cv2


class Frame:
    __slots__ = ("ok", "image", "ts", "index")

    def __init__(self, ok: bool, image, ts: float, index: int | None = None):
        self.ok = ok
        self.image = image
        self.ts = ts  # 捕获时间戳（秒，float）
        self.index = index


class VideoSource:
    """OpenCV camera / video-file source; ``read`` is called only on the capture thread."""

    def __init__(self, config: Dict[str, Any]):
        cfg = config or {}
        self.source = cfg.get("source", 0)
        self.width = int(cfg.get("width", 640))
        self.height = int(cfg.get("height", 480))
        self.fps_request = cfg.get("fps_request", 30)
        self.backend = (cfg.get("backend") or "auto").lower()
        self._counter = 0

        if self.backend == "gstreamer":
            self.cap = cv2.VideoCapture(str(cfg.get("pipeline", "")), cv2.CAP_GSTREAMER)
        else:
            self.cap = cv2.VideoCapture(self.source)
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.fps_request)
            # 只保留最新帧，采样间隔由控制器决定
            self.cap.set(cv2.CAP_PROP_BUFFERSIZE, int(cfg.get("buffersize", 1)))

    def read(self) -> Frame:
        if not self.cap:
            return Frame(False, None, time.time(), None)
        ok, img = self.cap.read()
        ts = time.time()
        idx = self._counter
        self._counter += 1
        return Frame(ok, img, ts, idx)

    def is_opened(self) -> bool:
        return bool(self.cap) and bool(self.cap.isOpened())

    def release(self):
        if self.cap:
            self.cap.release()
            self.cap = None


class ImageFileSource:
    """Replay still images as a frame source (offline runs and demos)."""

    def __init__(self, paths: Sequence[str | Path], loop: bool = True):
        self.paths: List[Path] = [Path(p) for p in paths]
        if not self.paths:
            raise ValueError("ImageFileSource 需要至少一张图片")
        self.loop = loop
        self._counter = 0

    def read(self) -> Frame:
        idx = self._counter
        if idx >= len(self.paths) and not self.loop:
            return Frame(False, None, time.time(), idx)
        path = self.paths[idx % len(self.paths)]
        img = cv2.imread(str(path), cv2.IMREAD_COLOR)
        self._counter += 1
        return Frame(img is not None, img, time.time(), idx)

    def release(self):
        pass


def build_source(cfg: Dict[str, Any]):
    source = cfg.get("source", 0)
    if isinstance(source, str) and Path(source).is_dir():
        files = sorted(
            p for p in Path(source).iterdir() if p.suffix.lower() in (".jpg", ".jpeg", ".png", ".bmp")
        )
        return ImageFileSource(files, loop=bool(cfg.get("loop", True)))
    return VideoSource(cfg)
