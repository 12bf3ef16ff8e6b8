from concurrent.futures import Future

import pytest

from gridsense.runtime import (
    LatencyMetadata,
    TaggedToken,
    chain,
    instrument,
    instrument_async,
    latency_report,
    max_latency,
    tag_source,
)


class FakeClock:
    def __init__(self, *ticks: float) -> None:
        self._ticks = list(ticks)

    def __call__(self) -> float:
        return self._ticks.pop(0)


def test_ingress_tags_payload() -> None:
    token = TaggedToken.ingress("frame", tag="camera", seq_id=7, clock=lambda: 3.0)

    assert token.payload == "frame"
    assert token.source_tag == "camera"
    assert token.seq_id == 7
    assert token.created_at == 3.0
    assert len(token.metadata) == 0


def test_tag_source_numbers_frames() -> None:
    tag = tag_source("camera")

    assert [tag(i).seq_id for i in range(3)] == [0, 1, 2]


def test_instrument_records_duration_and_keeps_tag() -> None:
    stage = instrument("double", lambda x: x * 2, clock=FakeClock(1.0, 1.25))
    token = TaggedToken.ingress(21, tag="camera", seq_id=4)

    out = stage(token)

    assert out.payload == 42
    assert list(out.metadata) == [("double", 250.0)]
    assert out.source_tag == "camera"
    assert out.seq_id == 4
    assert out.created_at == token.created_at
    assert len(token.metadata) == 0


def test_chain_accumulates_in_traversal_order() -> None:
    pipeline = chain(
        instrument("a", lambda x: x + 1),
        instrument("b", lambda x: x * 3),
        instrument("c", str),
    )

    out = pipeline(TaggedToken.ingress(1))

    assert out.payload == "6"
    assert out.metadata.names == ("a", "b", "c")
    assert all(ms >= 0.0 for _, ms in out.metadata)


def test_duplicate_stage_name_is_rejected() -> None:
    stage = instrument("same", lambda x: x)

    with pytest.raises(ValueError):
        chain(stage, stage)(TaggedToken.ingress(0))


def test_max_latency_picks_bottleneck() -> None:
    md = LatencyMetadata((("a", 5.0), ("b", 40.0), ("c", 12.0)))

    assert max_latency(md) == 40.0
    assert LatencyMetadata().max_latency() == 0.0


def test_latency_report_appends_total() -> None:
    token = TaggedToken(payload=None, metadata=LatencyMetadata((("a", 5.0), ("b", 7.0))), created_at=10.0)

    assert latency_report(token, now=10.5) == [("a", 5.0), ("b", 7.0), ("total", 500.0)]


def test_async_stage_resolves_with_new_entry() -> None:
    inner: Future = Future()
    stage = instrument_async("inference", lambda payload: inner, clock=FakeClock(2.0, 2.1))

    outer = stage(TaggedToken.ingress("tensor", seq_id=3))
    assert not outer.done()
    inner.set_result("raw")

    out = outer.result(timeout=1)
    assert out.payload == "raw"
    assert out.seq_id == 3
    assert out.metadata.names == ("inference",)
    assert out.metadata.entries[0][1] == pytest.approx(100.0)


def test_async_stage_propagates_failure() -> None:
    inner: Future = Future()
    outer = instrument_async("inference", lambda payload: inner)(TaggedToken.ingress(None))

    inner.set_exception(RuntimeError("boom"))

    with pytest.raises(RuntimeError, match="boom"):
        outer.result(timeout=1)


def test_cancelling_async_stage_cancels_inner() -> None:
    inner: Future = Future()
    outer = instrument_async("inference", lambda payload: inner)(TaggedToken.ingress(None))

    assert outer.cancel()

    assert inner.cancelled()


def test_late_result_after_cancel_is_ignored() -> None:
    inner: Future = Future()
    inner.set_running_or_notify_cancel()  # 已在执行，无法取消
    outer = instrument_async("inference", lambda payload: inner)(TaggedToken.ingress(None))

    outer.cancel()
    inner.set_result("late")

    assert outer.cancelled()
