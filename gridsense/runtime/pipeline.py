from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..detect import BoxExtractor, DetectorConfig, GridDecoder, InferenceEngine, SuppressionEngine
from ..errors import CaptureError, DecodeError
from .contexts import ExecutionContexts
from .controller import LatencyController
from .token import TaggedToken, chain, instrument, instrument_async, latency_report, tag_source

logger = logging.getLogger(__name__)

Sink = Callable[..., None]
Archiver = Callable[[List[np.ndarray]], Any]


@dataclass
class PipelineStats:
    sampled: int = 0
    skipped: int = 0
    delivered: int = 0
    failed: int = 0
    stale: int = 0


class DetectionPipeline:
    """Capture -> preprocess -> inference -> decode -> extract -> suppress -> sink.

    At most one frame is in flight. The capture loop wakes every
    ``controller.current_interval_ms`` and samples a frame only if the previous
    one has been fully delivered (or dropped); busy ticks are skipped rather
    than queued, so results reach the sink in sampling order.
    """

    def __init__(
        self,
        source: Any,
        preprocess: Callable[[np.ndarray], np.ndarray],
        engine: InferenceEngine,
        detector_cfg: DetectorConfig,
        sink: Sink,
        controller: LatencyController,
        contexts: ExecutionContexts,
        grabber: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        archiver: Optional[Archiver] = None,
        source_tag: str = "camera",
        stop_timeout: float = 2.0,
    ) -> None:
        self._source = source
        self._engine = engine
        self._sink = sink
        self._controller = controller
        self._contexts = contexts
        self._grabber = grabber
        self._archiver = archiver
        self.source_tag = source_tag
        self._ingress = tag_source(source_tag)
        self._stop_timeout = float(stop_timeout)

        front: List[Callable[[TaggedToken], TaggedToken]] = []
        if grabber is not None:
            front.append(instrument("framegrabber", grabber))
        front.append(instrument("preprocess", preprocess))
        self._front = chain(*front)
        self._infer = instrument_async("inference", engine.submit)
        self._back = chain(
            instrument("decode", GridDecoder(detector_cfg)),
            instrument("extract", BoxExtractor(detector_cfg)),
            instrument("suppress", SuppressionEngine(detector_cfg)),
        )

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._idle = threading.Event()
        self._idle.set()
        self._cancelled = False
        self._inflight: Optional[Future] = None
        self._inflight_frame: Optional[np.ndarray] = None
        self._last_delivered = -1
        self._capture_future: Optional[Future] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._stats = PipelineStats()
        self.capture_error: Optional[Exception] = None

        self._tick = threading.Condition()
        self._interval_changed = False
        controller.subscribe(self._on_interval_change)

    # ------------------------------------------------------------------ control
    def start(self) -> None:
        if self._capture_future is not None:
            raise RuntimeError("pipeline already started")
        self._capture_future = self._contexts.capture.submit(self._capture_loop)

    def cancel(self) -> bool:
        """Stop sampling, drop the in-flight frame and run teardown once.

        Returns ``False`` when the pipeline was already cancelled.
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            inflight, self._inflight = self._inflight, None
            self._inflight_frame = None
        self._stop_event.set()
        with self._tick:
            self._tick.notify_all()
        if inflight is not None:
            inflight.cancel()

        if self._capture_future is not None and threading.current_thread() is not self._capture_thread:
            try:
                self._capture_future.result(timeout=self._stop_timeout)
            except FutureTimeoutError:
                logger.warning("采集线程 %.1fs 内未退出", self._stop_timeout)

        self._teardown()
        self._idle.set()
        logger.info(
            "管线已停止: sampled=%d skipped=%d delivered=%d failed=%d",
            self._stats.sampled,
            self._stats.skipped,
            self._stats.delivered,
            self._stats.failed,
        )
        return True

    def close(self) -> None:
        self.cancel()
        self._engine.close()
        self._contexts.shutdown(wait=False)

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def stats(self) -> PipelineStats:
        with self._lock:
            return PipelineStats(**vars(self._stats))

    # ------------------------------------------------------------------ capture
    def _on_interval_change(self, interval_ms: float) -> None:
        with self._tick:
            self._interval_changed = True
            self._tick.notify_all()

    def _wait_tick(self) -> bool:
        """Sleep one sampling interval; return ``False`` once stopped.

        A new interval published mid-wait restarts the timer with that interval.
        """
        with self._tick:
            while not self._stop_event.is_set():
                self._interval_changed = False
                timeout = self._controller.current_interval_ms / 1000.0
                woken = self._tick.wait_for(
                    lambda: self._interval_changed or self._stop_event.is_set(), timeout
                )
                if not woken:
                    return True
            return False

    def _capture_loop(self) -> None:
        self._capture_thread = threading.current_thread()
        try:
            while self._wait_tick():
                if not self._idle.is_set():
                    with self._lock:
                        self._stats.skipped += 1
                    continue
                frame = self._source.read()
                if not frame.ok or frame.image is None:
                    raise CaptureError("视频源读取失败/已关闭")
                token = self._ingress(frame.image)
                with self._lock:
                    if self._cancelled:
                        break
                    self._stats.sampled += 1
                    self._inflight_frame = frame.image
                self._idle.clear()
                self._contexts.compute.submit(self._run_front, token)
        except Exception as exc:
            if not self._stop_event.is_set():
                logger.error("采集中断: %s", exc)
                self.capture_error = exc
                self.cancel()
        finally:
            release = getattr(self._source, "release", None)
            if release is not None:
                release()

    # ------------------------------------------------------------------ compute
    def _fail(self, token: TaggedToken, where: str, exc: BaseException) -> None:
        with self._lock:
            self._stats.failed += 1
        logger.warning("帧 %d 在 %s 阶段失败，已丢弃: %s", token.seq_id, where, exc)
        self._idle.set()

    def _run_front(self, token: TaggedToken) -> None:
        if self._stop_event.is_set():
            self._idle.set()
            return
        try:
            staged = self._front(token)
            future = self._infer(staged)
        except Exception as exc:
            self._fail(token, "preprocess", exc)
            return
        with self._lock:
            if self._cancelled:
                future.cancel()
                return
            self._inflight = future
        future.add_done_callback(lambda f: self._on_inference_done(token, f))

    def _on_inference_done(self, token: TaggedToken, future: Future) -> None:
        with self._lock:
            if self._inflight is future:
                self._inflight = None
        if future.cancelled() or self._stop_event.is_set():
            # 取消后才到达的结果直接丢弃
            self._idle.set()
            return
        exc = future.exception()
        if exc is not None:
            self._fail(token, "inference", exc)
            return
        try:
            self._contexts.compute.submit(self._run_back, future.result())
        except RuntimeError as err:
            self._fail(token, "inference", err)

    def _run_back(self, token: TaggedToken) -> None:
        if self._stop_event.is_set():
            self._idle.set()
            return
        try:
            out = self._back(token)
        except DecodeError as exc:
            self._fail(token, "decode", exc)
            return
        except Exception as exc:
            logger.exception("帧 %d 后处理异常", token.seq_id)
            self._fail(token, "postprocess", exc)
            return
        try:
            self._contexts.presentation.submit(self._deliver, out)
        except RuntimeError as err:
            self._fail(token, "presentation", err)

    # ------------------------------------------------------------- presentation
    def _deliver(self, token: TaggedToken) -> None:
        try:
            with self._lock:
                if self._cancelled:
                    return
                if token.seq_id <= self._last_delivered:
                    self._stats.stale += 1
                    return
                self._last_delivered = token.seq_id
                frame, self._inflight_frame = self._inflight_frame, None
            report = latency_report(token)
            try:
                self._sink(token, report, frame)
            except Exception:
                logger.exception("帧 %d 输出失败", token.seq_id)
            self._controller.observe(token)
            with self._lock:
                self._stats.delivered += 1
        finally:
            self._idle.set()

    # ----------------------------------------------------------------- teardown
    def _teardown(self) -> None:
        if self._grabber is None or self._archiver is None:
            return
        finish = getattr(self._grabber, "finish", None)
        if finish is None:
            return
        frames = finish()
        logger.info("保存 %d 帧", len(frames))
        try:
            self._archiver(frames)
        except Exception:
            logger.exception("帧归档失败")


def run_once(
    raw: np.ndarray,
    detector_cfg: DetectorConfig,
) -> Tuple[TaggedToken, Sequence]:
    """Decode one raw tensor synchronously through the instrumented back half."""
    back = chain(
        instrument("decode", GridDecoder(detector_cfg)),
        instrument("extract", BoxExtractor(detector_cfg)),
        instrument("suppress", SuppressionEngine(detector_cfg)),
    )
    token = back(TaggedToken.ingress(raw, tag="tensor"))
    return token, token.payload


__all__ = ["DetectionPipeline", "PipelineStats", "run_once"]
