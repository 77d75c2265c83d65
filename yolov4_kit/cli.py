from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import BACKENDS, DATASETS, MODEL_FILES, TARGETS, Yolov4Param, load_param_file
from .runtime import Yolov4Detector
from .types import DetectionSet
from .visualize import draw_detections


logger = logging.getLogger(__name__)

# CLI dest -> param map key
_OVERRIDES = {
    "model": "modelName",
    "dataset": "datasetName",
    "model_folder": "modelFolder",
    "cfg": "structureFile",
    "weights": "modelFile",
    "labels": "labelsFile",
    "imgsz": "inputSize",
    "conf": "confidence",
    "nms": "nmsThreshold",
    "backend": "backend",
    "target": "target",
    "color_seed": "colorSeed",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run YOLOv4 detection and visualize bounding boxes + labels.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--config", default=None, help="JSON parameter file (modelName, confidence, ...).")
    parser.add_argument("--model", default=None, choices=list(MODEL_FILES), help="Pretrained model (COCO dataset).")
    parser.add_argument("--dataset", default=None, choices=list(DATASETS), help="COCO or Custom.")
    parser.add_argument("--model-folder", default=None, help="Folder holding the pretrained COCO files.")
    parser.add_argument("--cfg", default=None, help="Darknet .cfg file (Custom dataset).")
    parser.add_argument("--weights", default=None, help="Darknet .weights file (Custom dataset).")
    parser.add_argument("--labels", default=None, help="Class names file, one per line (Custom dataset).")
    parser.add_argument("--imgsz", default=None, help="Network input size, multiple of 32 in [32, 2048].")
    parser.add_argument("--conf", default=None, help="Confidence threshold.")
    parser.add_argument("--nms", default=None, help="IoU threshold for NMS.")
    parser.add_argument("--backend", default=None, choices=list(BACKENDS), help="OpenCV DNN backend.")
    parser.add_argument("--target", default=None, choices=list(TARGETS), help="OpenCV DNN target device.")
    parser.add_argument("--color-seed", default=None, help="Seed of the per-class color table.")
    parser.add_argument("--show", action="store_true", help="Show a window with visualized detections.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) to save the visualization.")
    parser.add_argument("--json-out", default=None, help="Write detections of the image to this JSON file.")
    parser.add_argument("--every", type=int, default=1, help="Process every Nth frame for video/webcam.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser


def build_param(args: argparse.Namespace) -> Yolov4Param:
    """Parameters from --config (if any), then explicit CLI flags on top."""

    base = load_param_file(Path(args.config)) if args.config else Yolov4Param()
    overrides: Dict[str, str] = {}
    for dest, key in _OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            overrides[key] = value
    # Explicit files imply a custom network.
    if any(getattr(args, d) is not None for d in ("cfg", "weights", "labels")) and args.dataset is None:
        overrides["datasetName"] = "Custom"
    return Yolov4Param.from_param_map(overrides, base=base)


def _print_detections(detections: DetectionSet) -> None:
    for det in detections:
        print(det.id, det.class_name, f"{det.confidence:.3f}", det.rect)


def main(argv: Optional[Sequence[str]] = None) -> int:
    import cv2

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    param = build_param(args)
    detector = Yolov4Detector(param)

    if args.image is not None:
        img = cv2.imread(args.image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {args.image}")

        detections = detector.run(img)
        if args.json_out:
            detections.write_json(args.json_out)

        vis = draw_detections(img, detections, show_score=True)
        if args.out:
            ok = cv2.imwrite(args.out, vis)
            if not ok:
                raise RuntimeError(f"Failed to write output image: {args.out}")

        if args.show:
            cv2.imshow("detections", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()

        _print_detections(detections)
        return 0

    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    if args.video is not None:
        cap = cv2.VideoCapture(args.video)
        if not cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {args.video}")
    else:
        cap = cv2.VideoCapture(int(args.webcam))
        if not cap.isOpened():
            raise RuntimeError(f"Could not open webcam index: {args.webcam}")

    writer = None
    frame_idx = 0
    processed = 0
    counts: List[int] = []

    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break

            frame_idx += 1
            if (frame_idx - 1) % args.every != 0:
                continue

            detections = detector.run(frame)
            counts.append(len(detections))
            vis = draw_detections(frame, detections, show_score=True)

            if args.out and writer is None:
                fps = cap.get(cv2.CAP_PROP_FPS)
                if fps is None or fps <= 0:
                    fps = 30.0
                h, w = vis.shape[:2]
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                writer = cv2.VideoWriter(args.out, fourcc, fps, (w, h))
                if not writer.isOpened():
                    raise RuntimeError(f"Failed to open video writer: {args.out}")

            if writer is not None:
                writer.write(vis)

            if args.show:
                cv2.imshow("detections", vis)
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break

            processed += 1
            if args.max_frames and processed >= args.max_frames:
                break

    finally:
        cap.release()
        if writer is not None:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()

    logger.info("processed %d frames, %d detections", processed, sum(counts))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
