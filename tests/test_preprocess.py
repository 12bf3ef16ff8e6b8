from pathlib import Path

import numpy as np
import pytest

from gridsense.config import default_config
from gridsense.io_video import FrameGrabber, ImageFileSource, save_frames
from gridsense.preprocess import PreprocessPipeline


def test_default_chain_produces_normalized_network_input() -> None:
    pipeline = PreprocessPipeline(default_config()["preprocess"])
    image = np.full((480, 640, 3), 128, dtype=np.uint8)

    out = pipeline(image)

    assert out.shape == (416, 416, 3)
    assert out.dtype == np.float32
    np.testing.assert_allclose(out, 0.0)


def test_rotate_swaps_axes() -> None:
    pipeline = PreprocessPipeline({"chain": [{"name": "Rotate", "params": {"angle": 90}}]})

    assert pipeline(np.zeros((4, 6, 3), dtype=np.uint8)).shape == (6, 4, 3)


def test_unknown_op_is_reported() -> None:
    with pytest.raises(KeyError):
        PreprocessPipeline({"chain": [{"name": "Sharpen"}]})


def test_disabled_pipeline_passes_through() -> None:
    image = np.zeros((2, 2, 3), dtype=np.uint8)

    assert PreprocessPipeline({"enabled": False, "chain": [{"name": "BGR2RGB"}]})(image) is image


def test_frame_grabber_keeps_first_frames_only() -> None:
    grabber = FrameGrabber(capacity=2)
    frames = [np.full((2, 2, 3), i, dtype=np.uint8) for i in range(3)]

    passed = [grabber(f) for f in frames]

    assert all(p is f for p, f in zip(passed, frames))
    kept = grabber.finish()
    assert [int(f[0, 0, 0]) for f in kept] == [0, 1]
    assert grabber.finish() == []


def test_saved_frames_replay_through_image_source(tmp_path: Path) -> None:
    frames = [np.full((4, 4, 3), 40 * i, dtype=np.uint8) for i in range(2)]

    written = save_frames(frames, tmp_path / "frames", prefix="f")

    assert [p.name for p in written] == ["f0000.png", "f0001.png"]
    source = ImageFileSource(written, loop=False)
    first, second, third = source.read(), source.read(), source.read()
    assert first.ok and second.ok and not third.ok
    np.testing.assert_array_equal(second.image, frames[1])
