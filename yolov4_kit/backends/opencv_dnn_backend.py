from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Union

import numpy as np

from ..exceptions import InferenceError, ModelLoadError


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenCvDnnBackendConfig:
    """
    Configuration for OpenCV DNN inference.

    - input_size: square network input resolution (multiple of 32)
    - backend/target: names resolved to cv2.dnn DNN_BACKEND_* / DNN_TARGET_* constants
    """

    input_size: int = 416
    backend: str = "default"
    target: str = "cpu"


# Names of the cv2.dnn constants; looked up lazily since builds differ in what they expose.
BACKEND_CONSTANTS: Dict[str, str] = {
    "default": "DNN_BACKEND_DEFAULT",
    "opencv": "DNN_BACKEND_OPENCV",
    "cuda": "DNN_BACKEND_CUDA",
    "inference_engine": "DNN_BACKEND_INFERENCE_ENGINE",
    "vkcom": "DNN_BACKEND_VKCOM",
}
TARGET_CONSTANTS: Dict[str, str] = {
    "cpu": "DNN_TARGET_CPU",
    "opencl": "DNN_TARGET_OPENCL",
    "opencl_fp16": "DNN_TARGET_OPENCL_FP16",
    "cuda": "DNN_TARGET_CUDA",
    "cuda_fp16": "DNN_TARGET_CUDA_FP16",
    "myriad": "DNN_TARGET_MYRIAD",
    "vulkan": "DNN_TARGET_VULKAN",
}


def _dnn_constant(cv2, table: Dict[str, str], name: str) -> int:
    if name not in table:
        raise ModelLoadError(f"Unknown DNN backend/target: {name!r}")
    value = getattr(cv2.dnn, table[name], None)
    if value is None:
        raise ModelLoadError(f"This OpenCV build does not provide cv2.dnn.{table[name]}")
    return int(value)


def configure_net(cv2, net, cfg: OpenCvDnnBackendConfig) -> List[str]:
    """Apply backend/target to a loaded net and return its output layer names."""

    backend_id = _dnn_constant(cv2, BACKEND_CONSTANTS, cfg.backend)
    target_id = _dnn_constant(cv2, TARGET_CONSTANTS, cfg.target)
    try:
        net.setPreferableBackend(backend_id)
        net.setPreferableTarget(target_id)
        return list(net.getUnconnectedOutLayersNames())
    except cv2.error as e:
        raise ModelLoadError(f"Cannot use backend={cfg.backend} target={cfg.target}: {e}") from e


class OpenCvDnnBackend:
    """
    Darknet (.cfg + .weights) network run through `cv2.dnn`.

    Expects an OpenCV-style BGR uint8 image (H, W, 3). The blob is built with
    scale 1/255, no mean subtraction and BGR -> RGB swap. Returns one array per
    unconnected output layer, each shaped (rows, 5 + num_classes).
    """

    def __init__(
        self,
        structure_file: PathLike,
        model_file: PathLike,
        cfg: OpenCvDnnBackendConfig = OpenCvDnnBackendConfig(),
    ):
        import cv2

        self._cv2 = cv2
        self.cfg = cfg
        self.structure_file = Path(structure_file)
        self.model_file = Path(model_file)
        for path in (self.structure_file, self.model_file):
            if not path.is_file():
                raise ModelLoadError(f"Network file not found: {path}")

        try:
            net = cv2.dnn.readNetFromDarknet(str(self.structure_file), str(self.model_file))
        except cv2.error as e:
            raise ModelLoadError(f"Failed to load network '{self.structure_file}': {e}") from e
        if net.empty():
            raise ModelLoadError(f"Failed to load network '{self.structure_file}'")

        self.net = net
        self.output_names = configure_net(cv2, net, cfg)
        logger.info(
            "loaded %s (%d output layers, backend=%s, target=%s)",
            self.structure_file.name,
            len(self.output_names),
            cfg.backend,
            cfg.target,
        )

    @property
    def empty(self) -> bool:
        return self.net.empty()

    def infer(self, image: np.ndarray) -> List[np.ndarray]:
        cv2 = self._cv2
        size = self.cfg.input_size
        try:
            blob = cv2.dnn.blobFromImage(
                image,
                scalefactor=1.0 / 255.0,
                size=(size, size),
                mean=(0, 0, 0),
                swapRB=True,
                crop=False,
            )
            self.net.setInput(blob)
            outputs = self.net.forward(self.output_names)
        except cv2.error as e:
            raise InferenceError(str(e)) from e
        return [np.asarray(o) for o in outputs]
