import threading
from unittest.mock import Mock

import pytest

from gridsense.errors import ConfigError
from gridsense.runtime import LatencyController, LatencyMetadata, ReportSmoother, TaggedToken


def _controller(**kwargs) -> LatencyController:
    params = dict(
        initial_interval_ms=100.0,
        hysteresis_ms=10.0,
        smoothing=0.9,
        min_interval_ms=30.0,
        max_interval_ms=500.0,
    )
    params.update(kwargs)
    return LatencyController(**params)


def test_rising_latency_grows_interval_up_to_max() -> None:
    ctl = _controller()

    intervals = [ctl.update(lat) for lat in (150.0, 200.0, 300.0, 400.0, 600.0, 800.0)]

    assert intervals == [150.0, 200.0, 300.0, 400.0, 500.0, 500.0]
    assert all(a <= b for a, b in zip(intervals, intervals[1:]))


def test_small_latency_shrinks_interval_down_to_min() -> None:
    ctl = _controller(initial_interval_ms=250.0)

    assert ctl.update(120.0) == 120.0
    assert ctl.update(1.0) == 30.0
    assert ctl.update(0.5) == 30.0
    assert ctl.current_interval_ms == 30.0


def test_latency_inside_hysteresis_band_changes_nothing() -> None:
    ctl = _controller()

    for lat in (95.0, 105.0, 110.0, 90.0, 100.0):
        assert ctl.update(lat) == 100.0


@pytest.mark.parametrize("bad", [0.0, -5.0, float("nan")])
def test_non_positive_latency_is_ignored(bad) -> None:
    ctl = _controller()
    ctl.update(200.0)

    assert ctl.update(bad) == 200.0
    assert ctl.state().smoothed_latency_ms == 200.0


def test_initial_interval_is_clamped() -> None:
    assert _controller(initial_interval_ms=5000.0).current_interval_ms == 500.0
    assert _controller(initial_interval_ms=1.0).current_interval_ms == 30.0


def test_invalid_range_is_rejected() -> None:
    with pytest.raises(ConfigError):
        _controller(min_interval_ms=600.0)
    with pytest.raises(ConfigError):
        _controller(smoothing=1.0)


def test_smoothing_is_cosmetic() -> None:
    ctl = _controller()

    ctl.update(100.0)
    interval = ctl.update(400.0)

    state = ctl.state()
    assert interval == 400.0
    assert state.smoothed_latency_ms == pytest.approx(0.9 * 100.0 + 0.1 * 400.0)
    assert state.current_interval_ms == 400.0


def test_observe_uses_slowest_stage() -> None:
    ctl = _controller()
    token = TaggedToken(
        payload=[],
        metadata=LatencyMetadata((("preprocess", 20.0), ("inference", 180.0), ("decode", 8.0))),
    )

    assert ctl.observe(token) == 180.0


def test_listeners_only_hear_changes() -> None:
    ctl = _controller()
    listener = Mock()
    ctl.subscribe(listener)

    ctl.update(105.0)
    ctl.update(300.0)

    listener.assert_called_once_with(300.0)


def test_concurrent_updates_stay_in_range() -> None:
    ctl = _controller()
    barrier = threading.Barrier(4)

    def worker(seed: int) -> None:
        barrier.wait()
        for i in range(500):
            ctl.update(float((seed * 131 + i * 37) % 900 + 1))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    state = ctl.state()
    assert state.min_interval_ms <= state.current_interval_ms <= state.max_interval_ms


def test_from_dict_reads_control_section() -> None:
    ctl = LatencyController.from_dict({"initial_interval_ms": 80, "min_interval_ms": 40, "max_interval_ms": 90})

    assert ctl.current_interval_ms == 80.0
    assert ctl.update(1000.0) == 90.0


def test_report_smoother_blends_per_stage() -> None:
    smooth = ReportSmoother(alpha=0.5)

    smooth([("a", 10.0), ("b", 20.0)])
    out = smooth([("a", 30.0), ("b", 20.0), ("c", 4.0)])

    assert out == [("a", 20.0), ("b", 20.0), ("c", 4.0)]
