from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np


@dataclass
class NMSConfig:
    score_threshold: float = 0.5
    iou_threshold: float = 0.4
    # None keeps every survivor.
    max_detections: Optional[int] = None


def iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Intersection over union of two (left, top, width, height) rectangles.
    """

    ax2, ay2 = a[0] + a[2], a[1] + a[3]
    bx2, by2 = b[0] + b[2], b[1] + b[3]
    w = max(0.0, min(ax2, bx2) - max(a[0], b[0]))
    h = max(0.0, min(ay2, by2) - max(a[1], b[1]))
    inter = w * h
    union = a[2] * a[3] + b[2] * b[3] - inter
    if union <= 0.0:
        return 0.0
    return float(inter / union)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS for a single class.

    Expects boxes shape (N,4) as (left, top, width, height) and scores shape (N,).
    Returns indices into `boxes`, highest score first.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] != scores.shape[0]:
        raise ValueError(f"boxes/scores length mismatch: {boxes.shape[0]} vs {scores.shape[0]}")

    candidates = np.where(scores > cfg.score_threshold)[0]
    if candidates.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = x1 + boxes[:, 2]
    y2 = y1 + boxes[:, 3]
    areas = boxes[:, 2] * boxes[:, 3]

    order = candidates[np.argsort(-scores[candidates], kind="stable")]
    keep = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(i)

        rest = order[1:]
        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        # Zero union only happens for zero-area pairs; treat as no overlap.
        iou_vals = np.divide(inter, union, out=np.zeros_like(inter), where=union > 0.0)

        order = rest[iou_vals <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int32)
