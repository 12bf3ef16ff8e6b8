from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..detect import BBox
from .token import TaggedToken


@dataclass(slots=True)
class DetectionResult:
    seq_id: int
    boxes: List[BBox]
    report: List[Tuple[str, float]]
    source_tag: str
    frame: Optional[np.ndarray] = None


class LatestResultSink:
    """Hand the newest result over to a UI thread; older unread results are replaced."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._latest: Optional[DetectionResult] = None
        self.replaced = 0

    def __call__(
        self,
        token: TaggedToken,
        report: List[Tuple[str, float]],
        frame: Optional[np.ndarray] = None,
    ) -> None:
        result = DetectionResult(
            seq_id=token.seq_id,
            boxes=list(token.payload),
            report=list(report),
            source_tag=token.source_tag,
            frame=frame,
        )
        with self._cond:
            if self._latest is not None:
                self.replaced += 1
            self._latest = result
            self._cond.notify_all()

    def get(self, timeout: float = 0.2) -> Optional[DetectionResult]:
        with self._cond:
            if self._latest is None:
                self._cond.wait(timeout)
            result, self._latest = self._latest, None
            return result


__all__ = ["DetectionResult", "LatestResultSink"]
