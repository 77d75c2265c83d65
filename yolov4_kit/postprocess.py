from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .nms import NMSConfig, nms
from .types import CandidateBox, Color, Detection, DetectionSet


logger = logging.getLogger(__name__)

# Column of the first class score in a YOLOv4 output row:
# [cx, cy, w, h, objectness, class_scores...]
PROBABILITY_INDEX = 5


@dataclass
class Yolov4PostConfig:
    """
    Thresholds for YOLOv4 post processing.

    `conf_threshold` is used twice: by the decoder and again as the NMS score filter.
    """

    conf_threshold: float = 0.5
    nms_threshold: float = 0.4
    # Per-class survivor cap, None keeps all.
    max_detections: Optional[int] = None


def _as_rows(output: np.ndarray, num_classes: int) -> np.ndarray:
    p = np.asarray(output)
    if p.size == 0:
        return np.empty((0, PROBABILITY_INDEX + num_classes), dtype=np.float32)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 2:
        raise ValueError(f"Unsupported YOLOv4 output shape: {p.shape}")
    if p.shape[1] < PROBABILITY_INDEX + num_classes:
        raise ValueError(
            f"Output rows have {p.shape[1]} columns, expected at least {PROBABILITY_INDEX + num_classes} "
            f"for {num_classes} classes"
        )
    return p


def decode_outputs(
    outputs: Sequence[np.ndarray],
    image_size: Tuple[int, int],
    num_classes: int,
    conf_threshold: float,
) -> List[List[CandidateBox]]:
    """
    Split raw YOLOv4 rows into per-class candidate lists.

    Every row is tested against every class; a row lands in class `j` when its
    score at column `5 + j` is strictly above `conf_threshold`, so one row may
    feed several classes. Boxes are converted from normalized center/size to
    pixel (left, top, width, height).

    Args:
        outputs: one array per output layer, each (rows, 5 + C) or (1, rows, 5 + C)
        image_size: (width, height) of the original image
        num_classes: number of class score columns to read
        conf_threshold: strict lower bound on the class score
    """

    img_w, img_h = image_size
    candidates: List[List[CandidateBox]] = [[] for _ in range(num_classes)]

    for output in outputs:
        p = _as_rows(output, num_classes)
        if p.shape[0] == 0:
            continue

        width = p[:, 2] * img_w
        height = p[:, 3] * img_h
        left = p[:, 0] * img_w - width / 2
        top = p[:, 1] * img_h - height / 2
        class_scores = p[:, PROBABILITY_INDEX:PROBABILITY_INDEX + num_classes]

        for j in range(num_classes):
            rows = np.where(class_scores[:, j] > conf_threshold)[0]
            for i in rows:
                candidates[j].append(
                    CandidateBox(
                        rect=(float(left[i]), float(top[i]), float(width[i]), float(height[i])),
                        score=float(class_scores[i, j]),
                        class_index=j,
                    )
                )

    return candidates


def suppress_candidates(candidates: Sequence[CandidateBox], cfg: NMSConfig) -> List[int]:
    """
    Run NMS on one class's candidates and return surviving indices in selection order.
    """

    if not candidates:
        return []
    boxes = np.array([c.rect for c in candidates], dtype=np.float64)
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    return [int(i) for i in nms(boxes, scores, cfg)]


def merge_detections(
    candidates: Sequence[Sequence[CandidateBox]],
    keep_indices: Sequence[Sequence[int]],
    class_names: Sequence[str],
    colors: Sequence[Color],
    task_name: str = "infer_yolo_v4",
) -> DetectionSet:
    """
    Flatten per-class survivors into one DetectionSet.

    Classes are visited in index order and survivors in NMS order; ids run from 0.
    """

    detections: List[Detection] = []
    next_id = 0
    for class_idx, indices in enumerate(keep_indices):
        for index in indices:
            box = candidates[class_idx][index]
            left, top, width, height = box.rect
            detections.append(
                Detection(
                    id=next_id,
                    class_name=class_names[class_idx],
                    confidence=box.score,
                    x=left,
                    y=top,
                    width=width,
                    height=height,
                    color=tuple(colors[class_idx]),
                )
            )
            next_id += 1
    return DetectionSet(task_name=task_name, detections=tuple(detections))


class Yolov4Postprocessor:
    """
    Decode -> per-class NMS -> merge for YOLOv4 Darknet outputs.

    Layout (per output layer, per image):
    - (N, 5 + C): [cx, cy, w, h, obj, class_scores...], coordinates normalized to [0, 1]

    The objectness column is not read; class scores already include it.
    """

    def __init__(self, cfg: Yolov4PostConfig):
        self.cfg = cfg

    def process(
        self,
        outputs: Sequence[np.ndarray],
        image_size: Tuple[int, int],
        class_names: Sequence[str],
        colors: Sequence[Color],
        task_name: str = "infer_yolo_v4",
    ) -> DetectionSet:
        """
        Args:
            outputs: raw output arrays, one per output layer
            image_size: (width, height) of the original image
            class_names: index -> name, defines the number of classes
            colors: index -> RGB color
        """

        num_classes = len(class_names)
        if len(colors) < num_classes:
            raise ValueError(f"Got {len(colors)} colors for {num_classes} classes")

        candidates = decode_outputs(outputs, image_size, num_classes, self.cfg.conf_threshold)

        nms_cfg = NMSConfig(
            score_threshold=self.cfg.conf_threshold,
            iou_threshold=self.cfg.nms_threshold,
            max_detections=self.cfg.max_detections,
        )
        keep = [suppress_candidates(class_candidates, nms_cfg) for class_candidates in candidates]

        result = merge_detections(candidates, keep, class_names, colors, task_name=task_name)
        logger.debug(
            "decoded %d candidates, %d kept after NMS",
            sum(len(c) for c in candidates),
            len(result),
        )
        return result
