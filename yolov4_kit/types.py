from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Tuple, Union


Rect = Tuple[float, float, float, float]
Color = Tuple[int, int, int]


@dataclass(frozen=True)
class CandidateBox:
    """
    A box that passed the confidence threshold for one class, before NMS.

    `rect` is (left, top, width, height) in pixels.
    """

    rect: Rect
    score: float
    class_index: int


@dataclass(frozen=True)
class Detection:
    """
    Final detection emitted by the detector.

    Coordinates are the top-left corner plus size, in original image pixels.
    `color` is an RGB triplet taken from the per-class color table.
    """

    id: int
    class_name: str
    confidence: float
    x: float
    y: float
    width: float
    height: float
    color: Color = (255, 255, 255)

    @property
    def rect(self) -> Rect:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height


@dataclass(frozen=True)
class DetectionSet:
    """
    Detections for one image, class-major then in NMS selection order.
    """

    task_name: str = "infer_yolo_v4"
    detections: Tuple[Detection, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __getitem__(self, index: int) -> Detection:
        return self.detections[index]

    def by_class(self, class_name: str) -> List[Detection]:
        return [d for d in self.detections if d.class_name == class_name]

    def to_dicts(self) -> List[Dict[str, object]]:
        out = []
        for det in self.detections:
            payload = asdict(det)
            payload["color"] = list(det.color)
            out.append(payload)
        return out

    def write_json(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"task": self.task_name, "objects": self.to_dicts()}
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        return path
