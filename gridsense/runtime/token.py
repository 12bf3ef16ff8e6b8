"""Tagged tokens and per-stage latency instrumentation.

Every stage of the pipeline is a plain function ``payload -> payload``. The
helpers here lift such functions to ``TaggedToken -> TaggedToken`` and record
how long each call took, so that stages never time themselves.
"""
from __future__ import annotations

import time
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")
U = TypeVar("U")

Clock = Callable[[], float]


@dataclass(frozen=True)
class LatencyMetadata:
    """Append-only, ordered ``(stage, duration_ms)`` record."""

    entries: Tuple[Tuple[str, float], ...] = ()

    def with_entry(self, stage: str, duration_ms: float) -> "LatencyMetadata":
        if stage in self.names:
            raise ValueError(f"stage '{stage}' already recorded on this token")
        return LatencyMetadata(self.entries + ((stage, float(duration_ms)),))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.entries)

    def max_latency(self) -> float:
        """Duration of the slowest stage, 0.0 for an empty record."""
        return max((ms for _, ms in self.entries), default=0.0)

    def __iter__(self) -> Iterator[Tuple[str, float]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class TaggedToken(Generic[T]):
    payload: T
    metadata: LatencyMetadata = field(default_factory=LatencyMetadata)
    source_tag: str = "camera"
    created_at: float = field(default_factory=time.perf_counter)
    seq_id: int = 0

    @classmethod
    def ingress(
        cls,
        payload: T,
        tag: str = "camera",
        seq_id: int = 0,
        clock: Clock = time.perf_counter,
    ) -> "TaggedToken[T]":
        return cls(payload=payload, source_tag=tag, created_at=clock(), seq_id=seq_id)

    def advance(self, payload: U, stage: str, duration_ms: float) -> "TaggedToken[U]":
        return TaggedToken(
            payload=payload,
            metadata=self.metadata.with_entry(stage, duration_ms),
            source_tag=self.source_tag,
            created_at=self.created_at,
            seq_id=self.seq_id,
        )


def tag_source(tag: str, clock: Clock = time.perf_counter) -> Callable[[T], TaggedToken[T]]:
    """Return an ingress function that wraps raw payloads with ``tag``."""
    counter = iter(range(1 << 62))

    def _tag(payload: T) -> TaggedToken[T]:
        return TaggedToken.ingress(payload, tag=tag, seq_id=next(counter), clock=clock)

    return _tag


class Stage(Generic[T, U]):
    """Synchronous instrumented stage."""

    def __init__(self, name: str, fn: Callable[[T], U], clock: Clock = time.perf_counter) -> None:
        self.name = name
        self._fn = fn
        self._clock = clock

    def __call__(self, token: TaggedToken[T]) -> TaggedToken[U]:
        t0 = self._clock()
        out = self._fn(token.payload)
        t1 = self._clock()
        return token.advance(out, self.name, (t1 - t0) * 1000.0)

    def __repr__(self) -> str:
        return f"Stage({self.name!r})"


class AsyncStage(Generic[T, U]):
    """Instrumented stage around a call that returns a :class:`Future`.

    The duration covers submission to completion. Cancelling the returned
    future cancels the inner one as well.
    """

    def __init__(
        self,
        name: str,
        fn: Callable[[T], "Future[U]"],
        clock: Clock = time.perf_counter,
    ) -> None:
        self.name = name
        self._fn = fn
        self._clock = clock

    def __call__(self, token: TaggedToken[T]) -> "Future[TaggedToken[U]]":
        outer: Future = Future()
        t0 = self._clock()
        inner = self._fn(token.payload)

        def _inner_done(f: Future) -> None:
            if outer.cancelled():
                return
            try:
                if f.cancelled():
                    outer.cancel()
                    return
                exc = f.exception()
                if exc is not None:
                    outer.set_exception(exc)
                    return
                elapsed = (self._clock() - t0) * 1000.0
                outer.set_result(token.advance(f.result(), self.name, elapsed))
            except InvalidStateError:
                # outer 在检查之后被取消
                pass

        def _outer_done(f: Future) -> None:
            if f.cancelled():
                inner.cancel()

        outer.add_done_callback(_outer_done)
        inner.add_done_callback(_inner_done)
        return outer

    def __repr__(self) -> str:
        return f"AsyncStage({self.name!r})"


def instrument(name: str, fn: Callable[[T], U], clock: Clock = time.perf_counter) -> Stage[T, U]:
    return Stage(name, fn, clock)


def instrument_async(
    name: str,
    fn: Callable[[T], "Future[U]"],
    clock: Clock = time.perf_counter,
) -> AsyncStage[T, U]:
    return AsyncStage(name, fn, clock)


def chain(*stages: Callable[[TaggedToken], TaggedToken]) -> Callable[[TaggedToken], TaggedToken]:
    """Compose synchronous stages left to right."""

    def _run(token: TaggedToken) -> TaggedToken:
        for stage in stages:
            token = stage(token)
        return token

    return _run


def max_latency(metadata: LatencyMetadata) -> float:
    return metadata.max_latency()


def latency_report(
    token: TaggedToken,
    now: Optional[float] = None,
    clock: Clock = time.perf_counter,
) -> List[Tuple[str, float]]:
    """Per-stage durations in traversal order plus a trailing ``total`` row."""
    now = clock() if now is None else now
    report = list(token.metadata)
    report.append(("total", (now - token.created_at) * 1000.0))
    return report


__all__ = [
    "AsyncStage",
    "LatencyMetadata",
    "Stage",
    "TaggedToken",
    "chain",
    "instrument",
    "instrument_async",
    "latency_report",
    "max_latency",
    "tag_source",
]
