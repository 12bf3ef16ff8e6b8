from __future__ import annotations

import argparse
import logging
from functools import partial

import cv2

from gridsense.config import load_config, resolve_config_path
from gridsense.detect import DetectorConfig, build_engine, rescale_bbox
from gridsense.io_video import FPSMeter, FrameGrabber, build_source, save_frames
from gridsense.log import setup_logging
from gridsense.preprocess import PreprocessPipeline
from gridsense.runtime import (
    DetectionPipeline,
    ExecutionContexts,
    LatencyController,
    LatestResultSink,
    ReportSmoother,
)
from gridsense.vis import draw_boxes, draw_report, put_label

logger = logging.getLogger("gridsense.preview")


def parse_args():
    parser = argparse.ArgumentParser(description="Adaptive grid-detector preview")
    parser.add_argument("--config", type=str, default=None, help="配置文件路径，默认使用 configs/default.yaml")
    parser.add_argument("--source", type=str, default=None, help="覆盖 camera.source（设备号、视频文件或图片目录）")
    return parser.parse_args()


def build_pipeline(cfg: dict, sink) -> tuple[DetectionPipeline, LatencyController, DetectorConfig]:
    det_cfg_raw = cfg.get("detect", {}) or {}
    runtime_cfg = cfg.get("runtime", {}) or {}

    det_cfg = DetectorConfig.from_dict(det_cfg_raw)
    controller = LatencyController.from_dict(cfg.get("control", {}) or {})
    engine = build_engine(det_cfg_raw)

    grabber = None
    archiver = None
    grab_frames = int(runtime_cfg.get("grab_frames", 0))
    if grab_frames > 0:
        grabber = FrameGrabber(grab_frames)
        archiver = partial(save_frames, directory=runtime_cfg.get("archive_dir", "frames"), prefix="frame")

    pipeline = DetectionPipeline(
        source=build_source(cfg.get("camera", {}) or {}),
        preprocess=PreprocessPipeline(cfg.get("preprocess", {}) or {}),
        engine=engine,
        detector_cfg=det_cfg,
        sink=sink,
        controller=controller,
        contexts=ExecutionContexts.create(int(runtime_cfg.get("workers", 2))),
        grabber=grabber,
        archiver=archiver,
    )
    return pipeline, controller, det_cfg


def run_preview(cfg: dict) -> None:
    preview_cfg = cfg.get("preview", {}) or {}
    control_cfg = cfg.get("control", {}) or {}
    show = bool(preview_cfg.get("show", True))

    sink = LatestResultSink()
    pipeline, controller, det_cfg = build_pipeline(cfg, sink)
    smoother = ReportSmoother(alpha=float(control_cfg.get("smoothing", 0.9)))
    fpsm = FPSMeter(alpha=0.1)
    input_h, input_w = det_cfg.input_hw

    pipeline.start()
    try:
        while True:
            result = sink.get(timeout=0.2)
            if result is None:
                if pipeline.cancelled:
                    break
                continue

            fps = fpsm.tick()
            rows = smoother(result.report)
            state = controller.state()
            if not show or result.frame is None:
                logger.info(
                    "frame=%d boxes=%d interval=%.0fms latency~%.0fms %s",
                    result.seq_id,
                    len(result.boxes),
                    state.current_interval_ms,
                    state.smoothed_latency_ms,
                    " ".join(f"{name}={ms:.0f}" for name, ms in rows),
                )
                continue

            canvas = result.frame.copy()
            h, w = canvas.shape[:2]
            boxes = [rescale_bbox(b, w / input_w, h / input_h) for b in result.boxes]
            draw_boxes(
                canvas,
                boxes,
                thickness=int(preview_cfg.get("thickness", 2)),
                font_scale=float(preview_cfg.get("font_scale", 0.5)),
            )
            put_label(canvas, (10, 30), f"FPS: {fps:.1f}  interval: {state.current_interval_ms:.0f} ms", color=(0, 255, 255))
            draw_report(canvas, rows, origin=(10, 60))
            cv2.imshow("Preview", canvas)

            key = cv2.waitKey(1) & 0xFF
            if key in (27, ord("q")):
                break
    finally:
        pipeline.close()
        if show:
            cv2.destroyAllWindows()

    stats = pipeline.stats()
    print(
        f"ℹ️ 采样 {stats.sampled} 帧，跳过 {stats.skipped} 次，"
        f"输出 {stats.delivered} 帧，失败 {stats.failed} 帧"
    )
    if pipeline.capture_error is not None:
        print(f"⚠️ 采集中断: {pipeline.capture_error}")


def main():
    args = parse_args()
    cfg = load_config(str(resolve_config_path(args.config)))
    if args.source is not None:
        source = int(args.source) if args.source.isdigit() else args.source
        cfg.setdefault("camera", {})["source"] = source
    setup_logging((cfg.get("runtime", {}) or {}).get("log_level", "INFO"))
    run_preview(cfg)


if __name__ == "__main__":
    main()
