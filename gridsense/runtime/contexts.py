from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass


@dataclass
class ExecutionContexts:
    """Executors the pipeline runs on.

    ``capture`` and ``presentation`` must be single-threaded; ``compute`` may be
    a pool.
    """

    capture: Executor
    compute: Executor
    presentation: Executor

    @classmethod
    def create(cls, workers: int = 2) -> "ExecutionContexts":
        return cls(
            capture=ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture"),
            compute=ThreadPoolExecutor(max_workers=max(1, int(workers)), thread_name_prefix="compute"),
            presentation=ThreadPoolExecutor(max_workers=1, thread_name_prefix="presentation"),
        )

    def shutdown(self, wait: bool = True) -> None:
        for executor in (self.capture, self.compute, self.presentation):
            executor.shutdown(wait=wait, cancel_futures=True)


__all__ = ["ExecutionContexts"]
