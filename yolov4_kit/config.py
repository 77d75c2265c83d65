"""
Parameters for the YOLOv4 detector.

`Yolov4Param` is the single configuration record of the detector. It
serializes to and from a flat string map (`to_param_map` / `from_param_map`)
so any front end (CLI flags, JSON file, host application key-value store)
can produce it. Values are validated when the record is built, so a bad value
fails before any network is loaded or run.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import InvalidConfigurationError
from .paths import resolve_path


# Pretrained COCO models shipped in the model folder: name -> file stem.
MODEL_FILES: Dict[str, str] = {
    "YOLOv4x-mish": "yolov4x-mish",
    "YOLOv4-csp": "yolov4-csp",
    "YOLOv4": "yolov4",
    "Tiny YOLOv4": "yolov4-tiny",
}
COCO_LABELS_FILE = "coco_names.txt"
DATASETS = ("COCO", "Custom")

BACKENDS = ("default", "opencv", "cuda", "inference_engine", "vkcom")
TARGETS = ("cpu", "opencl", "opencl_fp16", "cuda", "cuda_fp16", "myriad", "vulkan")

MIN_INPUT_SIZE = 32
MAX_INPUT_SIZE = 2048
INPUT_SIZE_STEP = 32

# Changing any of these invalidates a loaded network.
NETWORK_FIELDS = frozenset(
    {
        "model_name",
        "dataset_name",
        "model_folder",
        "input_size",
        "backend",
        "target",
        "structure_file",
        "model_file",
        "labels_file",
        "color_seed",
    }
)

# Param map key -> dataclass field.
PARAM_KEYS: Dict[str, str] = {
    "modelName": "model_name",
    "datasetName": "dataset_name",
    "modelFolder": "model_folder",
    "inputSize": "input_size",
    "backend": "backend",
    "target": "target",
    "structureFile": "structure_file",
    "modelFile": "model_file",
    "labelsFile": "labels_file",
    "confidence": "confidence",
    "nmsThreshold": "nms_threshold",
    "colorSeed": "color_seed",
}


_FLOAT_FIELDS = frozenset({"confidence", "nms_threshold"})
_INT_FIELDS = frozenset({"input_size", "color_seed"})


def _default_model_folder() -> str:
    return os.getenv("YOLOV4_MODEL_FOLDER", "Models")


def _parse_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidConfigurationError(f"{key} must be a number, got {value!r}") from exc


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidConfigurationError(f"{key} must be an integer, got {value!r}")
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"{key} must be an integer, got {value!r}") from exc


def _parse_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidConfigurationError(f"{key} must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class Yolov4Param:
    """Configuration of the YOLOv4 detector"""

    model_name: str = "YOLOv4"
    dataset_name: str = "COCO"
    model_folder: str = field(default_factory=_default_model_folder)
    input_size: int = 416
    backend: str = "default"
    target: str = "cpu"
    # Only read when dataset_name == "Custom".
    structure_file: str = ""
    model_file: str = ""
    labels_file: str = ""
    confidence: float = 0.5
    nms_threshold: float = 0.4
    color_seed: int = 0

    def __post_init__(self) -> None:
        self._check_types()
        if self.dataset_name not in DATASETS:
            raise InvalidConfigurationError(f"datasetName must be one of {list(DATASETS)}, got {self.dataset_name!r}")
        if self.dataset_name == "COCO" and self.model_name not in MODEL_FILES:
            raise InvalidConfigurationError(
                f"modelName must be one of {list(MODEL_FILES)} for COCO, got {self.model_name!r}"
            )
        if not MIN_INPUT_SIZE <= self.input_size <= MAX_INPUT_SIZE or self.input_size % INPUT_SIZE_STEP != 0:
            raise InvalidConfigurationError(
                f"inputSize must be a multiple of {INPUT_SIZE_STEP} in "
                f"[{MIN_INPUT_SIZE}, {MAX_INPUT_SIZE}], got {self.input_size}"
            )
        if self.backend not in BACKENDS:
            raise InvalidConfigurationError(f"backend must be one of {list(BACKENDS)}, got {self.backend!r}")
        if self.target not in TARGETS:
            raise InvalidConfigurationError(f"target must be one of {list(TARGETS)}, got {self.target!r}")
        if not 0.0 <= self.confidence <= 1.0:
            raise InvalidConfigurationError(f"confidence must be between 0 and 1, got {self.confidence}")
        if not 0.0 <= self.nms_threshold <= 1.0:
            raise InvalidConfigurationError(f"nmsThreshold must be between 0 and 1, got {self.nms_threshold}")

    def _check_types(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _FLOAT_FIELDS:
                ok = isinstance(value, (int, float)) and not isinstance(value, bool)
                expected = "a number"
            elif f.name in _INT_FIELDS:
                ok = isinstance(value, int) and not isinstance(value, bool)
                expected = "an integer"
            else:
                ok = isinstance(value, str)
                expected = "a string"
            if not ok:
                raise InvalidConfigurationError(f"{f.name} must be {expected}, got {value!r}")

    @classmethod
    def from_param_map(cls, param_map: Mapping[str, Any], base: Optional["Yolov4Param"] = None) -> "Yolov4Param":
        """
        Build a parameter record from a key-value map.

        Keys missing from `param_map` keep the value of `base` (or the defaults).
        Values may be strings or, when coming from JSON, numbers.

        Raises:
            InvalidConfigurationError: unknown key, unparsable or out-of-range value
        """

        unknown = sorted(k for k in param_map if k not in PARAM_KEYS)
        if unknown:
            raise InvalidConfigurationError(f"Unknown parameter keys: {unknown}")

        changes: Dict[str, Any] = {}
        for key, value in param_map.items():
            name = PARAM_KEYS[key]
            if name in ("confidence", "nms_threshold"):
                changes[name] = _parse_float(key, value)
            elif name in ("input_size", "color_seed"):
                changes[name] = _parse_int(key, value)
            else:
                changes[name] = _parse_str(key, value)

        return replace(base if base is not None else cls(), **changes)

    def to_param_map(self) -> Dict[str, str]:
        # repr() of a float is the shortest string that parses back to the same value.
        out: Dict[str, str] = {}
        for key, name in PARAM_KEYS.items():
            value = getattr(self, name)
            out[key] = repr(value) if isinstance(value, float) else str(value)
        return out

    def network_changed(self, other: "Yolov4Param") -> bool:
        return any(getattr(self, f.name) != getattr(other, f.name) for f in fields(self) if f.name in NETWORK_FIELDS)

    def resolved_files(self, root: Optional[Path] = None) -> Tuple[Path, Path, Path]:
        """
        Return (structure_file, model_file, labels_file) as absolute paths.

        COCO models are looked up in `model_folder` by model name; Custom uses
        the explicit paths.
        """

        if self.dataset_name == "COCO":
            folder = resolve_path(self.model_folder, root=root)
            stem = MODEL_FILES[self.model_name]
            return folder / f"{stem}.cfg", folder / f"{stem}.weights", folder / COCO_LABELS_FILE

        missing = [
            key
            for key, value in (
                ("structureFile", self.structure_file),
                ("modelFile", self.model_file),
                ("labelsFile", self.labels_file),
            )
            if not value
        ]
        if missing:
            raise InvalidConfigurationError(f"Custom dataset requires {missing}")
        return (
            resolve_path(self.structure_file, root=root),
            resolve_path(self.model_file, root=root),
            resolve_path(self.labels_file, root=root),
        )


def load_param_file(path: Path, base: Optional[Yolov4Param] = None) -> Yolov4Param:
    """Load a JSON object of parameter keys (see `PARAM_KEYS`)."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Parameter file not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidConfigurationError(f"Invalid parameter JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise InvalidConfigurationError("Parameter file must be a JSON object")
    return Yolov4Param.from_param_map(payload, base=base)
