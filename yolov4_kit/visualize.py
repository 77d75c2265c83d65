from __future__ import annotations

from typing import Iterable, List

import numpy as np

from .types import Color, Detection


def generate_colors(num_classes: int, seed: int = 0) -> List[Color]:
    """
    One random RGB color per class, reproducible for a given seed.

    The whole table is drawn at once, so the same (num_classes, seed) always
    yields the same class -> color mapping.
    """

    if num_classes <= 0:
        return []
    rng = np.random.default_rng(int(seed))
    rgb = rng.integers(0, 256, size=(num_classes, 3), dtype=np.uint8)
    return [(int(r), int(g), int(b)) for r, g, b in rgb]


def draw_detections(
    image_bgr: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bounding boxes + labels on an OpenCV BGR image and return a copy.

    Args:
        image_bgr: input image in BGR (H, W, 3).
        detections: Detection (or a DetectionSet) in original image coordinates,
            each drawn in its own RGB color.
    """

    import cv2

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    out = image_bgr.copy()
    h, w = out.shape[:2]
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        corners = np.rint(det.as_xyxy()).astype(int)
        left, top, right, bottom = np.clip(corners, 0, [w - 1, h - 1, w - 1, h - 1]).tolist()
        bgr = tuple(reversed(det.color))
        cv2.rectangle(out, (left, top), (right, bottom), bgr, thickness=box_thickness)

        text = f"{det.class_name} {det.confidence:.2f}" if show_score else det.class_name
        _draw_label(out, text, (left, top), bgr, font, font_scale, font_thickness)

    return out


def _draw_label(image, text, anchor, bgr, font, font_scale, font_thickness) -> None:
    """Filled tag holding `text`, sitting on top of `anchor` or just below it near the top edge."""

    import cv2

    h, w = image.shape[:2]
    (text_w, text_h), baseline = cv2.getTextSize(text, font, font_scale, font_thickness)
    x, y = anchor
    tag_h = text_h + baseline
    tag_top = y - tag_h if y >= tag_h else y

    cv2.rectangle(
        image,
        (x, tag_top),
        (min(x + text_w, w - 1), min(tag_top + tag_h, h - 1)),
        bgr,
        thickness=-1,
    )
    cv2.putText(
        image,
        text,
        (x, min(tag_top + text_h, h - 1)),
        font,
        font_scale,
        (255, 255, 255),
        thickness=font_thickness,
        lineType=cv2.LINE_AA,
    )
