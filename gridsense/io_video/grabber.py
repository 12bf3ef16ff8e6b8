"""Keep a bounded copy of sampled frames and archive them on teardown."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Sequence

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FrameGrabber:
    """Pass-through stage that retains the first ``capacity`` frames it sees."""

    def __init__(self, capacity: int = 128) -> None:
        self.capacity = max(0, int(capacity))
        self._frames: List[np.ndarray] = []
        self._lock = threading.Lock()

    def __call__(self, image: np.ndarray) -> np.ndarray:
        with self._lock:
            if len(self._frames) < self.capacity:
                self._frames.append(image.copy())
        return image

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def finish(self) -> List[np.ndarray]:
        """Return the buffered frames and empty the buffer."""
        with self._lock:
            frames, self._frames = self._frames, []
        return frames


def save_frames(frames: Sequence[np.ndarray], directory: str | Path, prefix: str = "frame") -> List[Path]:
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for i, image in enumerate(frames):
        path = out_dir / f"{prefix}{i:04d}.png"
        if cv2.imwrite(str(path), image):
            written.append(path)
        else:
            logger.warning("写入失败: %s", path)
    return written


__all__ = ["FrameGrabber", "save_frames"]
