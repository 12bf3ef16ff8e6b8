from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from ..errors import InferenceError

logger = logging.getLogger(__name__)


class Backend(ABC):
    @abstractmethod
    def infer(self, tensor: np.ndarray) -> np.ndarray:
        """输入归一化后的 (H,W,3) float32，返回原始网格输出"""
        raise NotImplementedError()

    def close(self):  # 预留资源释放
        pass


class InferenceEngine(ABC):
    """Non-blocking inference: ``submit`` returns immediately with a future."""

    @abstractmethod
    def submit(self, tensor: np.ndarray) -> Future:
        raise NotImplementedError()

    def close(self) -> None:
        pass


class ThreadedEngine(InferenceEngine):
    """Run a blocking backend on its own executor so compute workers never wait on it.

    Failures are retried ``retries`` times with exponential backoff starting at
    ``retry_backoff_ms``; the last failure surfaces as :class:`InferenceError`.
    """

    def __init__(
        self,
        fn: Callable[[np.ndarray], np.ndarray],
        executor: Optional[ThreadPoolExecutor] = None,
        retries: int = 0,
        retry_backoff_ms: float = 50.0,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._fn = fn
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")
        self.retries = max(0, int(retries))
        self.retry_backoff_ms = max(0.0, float(retry_backoff_ms))
        self._on_close = on_close

    def _run(self, tensor: np.ndarray) -> np.ndarray:
        attempt = 0
        while True:
            try:
                return np.asarray(self._fn(tensor))
            except Exception as exc:
                if attempt >= self.retries:
                    if isinstance(exc, InferenceError):
                        raise
                    raise InferenceError(f"推理失败: {exc}") from exc
                delay = self.retry_backoff_ms * (2 ** attempt) / 1000.0
                attempt += 1
                logger.warning("推理失败 (%s)，%.0fms 后第 %d 次重试", exc, delay * 1000.0, attempt)
                time.sleep(delay)

    def submit(self, tensor: np.ndarray) -> Future:
        return self._executor.submit(self._run, tensor)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        if self._on_close is not None:
            self._on_close()


__all__ = ["Backend", "InferenceEngine", "ThreadedEngine"]
