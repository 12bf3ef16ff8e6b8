from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import ConfigError
from .token import TaggedToken

logger = logging.getLogger(__name__)

IntervalListener = Callable[[float], None]


@dataclass(frozen=True)
class SamplingState:
    current_interval_ms: float
    smoothed_latency_ms: float
    min_interval_ms: float
    max_interval_ms: float


class LatencyController:
    """Adapt the capture interval to the slowest pipeline stage.

    The decision uses the raw bottleneck latency of each delivered frame with a
    hysteresis deadband around the current interval. ``smoothed_latency_ms`` is
    an EMA kept for display only and is never read by :meth:`update`.
    """

    def __init__(
        self,
        initial_interval_ms: float = 250.0,
        hysteresis_ms: float = 10.0,
        smoothing: float = 0.9,
        min_interval_ms: float = 30.0,
        max_interval_ms: float = 2000.0,
    ) -> None:
        if min_interval_ms <= 0 or max_interval_ms < min_interval_ms:
            raise ConfigError(
                f"采样间隔范围非法: [{min_interval_ms}, {max_interval_ms}]"
            )
        if not 0.0 <= smoothing < 1.0:
            raise ConfigError(f"smoothing 需要在 [0, 1) 内: {smoothing}")
        self.hysteresis_ms = max(0.0, float(hysteresis_ms))
        self.smoothing = float(smoothing)
        initial = min(max(float(initial_interval_ms), min_interval_ms), max_interval_ms)
        self._lock = threading.Lock()
        self._state = SamplingState(
            current_interval_ms=initial,
            smoothed_latency_ms=0.0,
            min_interval_ms=float(min_interval_ms),
            max_interval_ms=float(max_interval_ms),
        )
        self._has_sample = False
        self._listeners: List[IntervalListener] = []

    @classmethod
    def from_dict(cls, cfg: dict) -> "LatencyController":
        cfg = cfg or {}
        return cls(
            initial_interval_ms=float(cfg.get("initial_interval_ms", 250.0)),
            hysteresis_ms=float(cfg.get("hysteresis_ms", 10.0)),
            smoothing=float(cfg.get("smoothing", 0.9)),
            min_interval_ms=float(cfg.get("min_interval_ms", 30.0)),
            max_interval_ms=float(cfg.get("max_interval_ms", 2000.0)),
        )

    @property
    def current_interval_ms(self) -> float:
        with self._lock:
            return self._state.current_interval_ms

    def state(self) -> SamplingState:
        with self._lock:
            return self._state

    def subscribe(self, listener: IntervalListener) -> None:
        """Call ``listener(new_interval_ms)`` every time the interval changes."""
        with self._lock:
            self._listeners.append(listener)

    def update(self, max_stage_latency_ms: float) -> float:
        """Feed one bottleneck measurement, return the interval now in force."""
        lat = float(max_stage_latency_ms)
        with self._lock:
            state = self._state
            if not lat > 0.0:
                logger.debug("忽略非法延迟测量: %s", max_stage_latency_ms)
                return state.current_interval_ms

            if self._has_sample:
                smoothed = self.smoothing * state.smoothed_latency_ms + (1.0 - self.smoothing) * lat
            else:
                smoothed = lat
                self._has_sample = True

            current = state.current_interval_ms
            if lat > current + self.hysteresis_ms:
                new_interval = min(lat, state.max_interval_ms)
            elif lat < current - self.hysteresis_ms:
                new_interval = max(lat, state.min_interval_ms)
            else:
                new_interval = current

            self._state = replace(state, current_interval_ms=new_interval, smoothed_latency_ms=smoothed)
            listeners = list(self._listeners) if new_interval != current else []

        if listeners:
            logger.debug("采样间隔 %.1fms -> %.1fms (瓶颈 %.1fms)", current, new_interval, lat)
            for listener in listeners:
                try:
                    listener(new_interval)
                except Exception:
                    logger.exception("采样间隔回调失败")
        return new_interval

    def observe(self, token: TaggedToken) -> float:
        return self.update(token.metadata.max_latency())


class ReportSmoother:
    """Per-stage EMA of latency reports for the operator table."""

    def __init__(self, alpha: float = 0.9) -> None:
        self.alpha = float(alpha)
        self._values: Dict[str, float] = {}

    def __call__(self, report: Sequence[Tuple[str, float]]) -> List[Tuple[str, float]]:
        out: List[Tuple[str, float]] = []
        for name, value in report:
            prev: Optional[float] = self._values.get(name)
            smoothed = value if prev is None else self.alpha * prev + (1.0 - self.alpha) * value
            self._values[name] = smoothed
            out.append((name, smoothed))
        return out

    def reset(self) -> None:
        self._values.clear()


__all__ = ["LatencyController", "ReportSmoother", "SamplingState"]
