from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import Yolov4Param
from .exceptions import InferenceError, InvalidConfigurationError, InvalidInputError, ModelLoadError
from .metadata import load_class_names
from .postprocess import Yolov4PostConfig, Yolov4Postprocessor
from .types import Color, DetectionSet
from .visualize import generate_colors


logger = logging.getLogger(__name__)

TASK_NAME = "infer_yolo_v4"

# param -> object with `infer(image) -> List[np.ndarray]` and an `empty` flag
BackendFactory = Callable[[Yolov4Param], Any]
LabelsLoader = Callable[[Path], Sequence[str]]


def default_backend_factory(param: Yolov4Param) -> Any:
    """Build an OpenCV DNN backend for the Darknet files named by `param`."""

    from .backends.opencv_dnn_backend import OpenCvDnnBackend, OpenCvDnnBackendConfig

    structure_file, model_file, _ = param.resolved_files()
    return OpenCvDnnBackend(
        structure_file,
        model_file,
        OpenCvDnnBackendConfig(input_size=param.input_size, backend=param.backend, target=param.target),
    )


def prepare_image(image: Optional[np.ndarray]) -> np.ndarray:
    """
    Validate an input image and make sure it has 3 channels (BGR).

    Grayscale (H, W) / (H, W, 1) and BGRA inputs are converted.
    """

    if image is None or not hasattr(image, "shape"):
        raise InvalidInputError("No input image")
    if image.size == 0:
        raise InvalidInputError("Empty image")

    if image.ndim == 2 or (image.ndim == 3 and image.shape[2] == 1):
        import cv2

        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        import cv2

        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.ndim == 3 and image.shape[2] == 3:
        return image
    raise InvalidInputError(f"Expected image shape (H, W), (H, W, 1), (H, W, 3) or (H, W, 4), got {image.shape}")


@dataclass(frozen=True)
class NetworkState:
    """Everything derived from one network load; replaced as a whole on reload."""

    backend: Any
    class_names: Tuple[str, ...]
    colors: Tuple[Color, ...]
    labels_file: Path


class Yolov4Detector:
    """
    YOLOv4 object detector: image in, DetectionSet out.

    The network is loaded lazily on the first `run()` and again after any change
    to a network-affecting parameter (model, dataset, files, input size,
    backend/target, color seed). A failed load leaves the detector marked for
    reload, so the next `run()` tries again.

    One instance is not safe to share between threads; use one per worker.

    Example:
        >>> detector = Yolov4Detector(Yolov4Param(model_name="Tiny YOLOv4", confidence=0.4))
        >>> for det in detector.run(image_bgr):
        ...     print(det.id, det.class_name, det.confidence, det.rect)
    """

    name = TASK_NAME

    def __init__(
        self,
        param: Optional[Yolov4Param] = None,
        *,
        backend_factory: Optional[BackendFactory] = None,
        labels_loader: LabelsLoader = load_class_names,
    ):
        self._param = param if param is not None else Yolov4Param()
        self._backend_factory = backend_factory or default_backend_factory
        self._labels_loader = labels_loader
        self._state: Optional[NetworkState] = None
        self._needs_reload = True

    # ------------------------------------------------------------------ #
    # Parameters
    # ------------------------------------------------------------------ #
    @property
    def param(self) -> Yolov4Param:
        return self._param

    @property
    def needs_reload(self) -> bool:
        return self._needs_reload

    def set_param(self, param: Yolov4Param) -> None:
        if param.network_changed(self._param):
            self._needs_reload = True
        self._param = param

    def update_param(self, **changes: Any) -> None:
        """Change individual fields, e.g. `update_param(confidence=0.3)`."""
        self.set_param(replace(self._param, **changes))

    def set_param_map(self, param_map: Mapping[str, Any]) -> None:
        """Apply a key-value map; keys not present keep their current value."""
        self.set_param(Yolov4Param.from_param_map(param_map, base=self._param))

    # ------------------------------------------------------------------ #
    # Network state
    # ------------------------------------------------------------------ #
    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def class_names(self) -> Tuple[str, ...]:
        return self._state.class_names if self._state is not None else ()

    @property
    def colors(self) -> Tuple[Color, ...]:
        return self._state.colors if self._state is not None else ()

    def load(self) -> NetworkState:
        """
        (Re)load network, class names and color table.

        Raises:
            InvalidConfigurationError: network/labels cannot be loaded
        """

        param = self._param
        labels_file = param.resolved_files()[2]

        try:
            backend = self._backend_factory(param)
        except OSError as e:
            raise ModelLoadError(f"Failed to load network: {e}") from e
        if backend is None or getattr(backend, "empty", False):
            raise ModelLoadError("Failed to load network")

        if self._state is not None and self._state.labels_file == labels_file:
            class_names = self._state.class_names
        else:
            try:
                class_names = tuple(self._labels_loader(labels_file))
            except (OSError, UnicodeDecodeError) as e:
                raise ModelLoadError(f"Failed to read labels file '{labels_file}': {e}") from e

        colors = tuple(generate_colors(len(class_names), seed=param.color_seed))
        self._state = NetworkState(
            backend=backend,
            class_names=class_names,
            colors=colors,
            labels_file=labels_file,
        )
        self._needs_reload = False
        logger.info("%s: network loaded (%s, %s, %d classes)", self.name, param.model_name, param.dataset_name, len(class_names))
        return self._state

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #
    def run(self, image: Optional[np.ndarray]) -> DetectionSet:
        """
        Detect objects in one image.

        Args:
            image: OpenCV-style BGR image (H, W, 3); grayscale/BGRA are converted

        Raises:
            InvalidInputError: no image or empty image
            InvalidConfigurationError: network load or inference failed
        """

        img = prepare_image(image)

        if self._needs_reload or self._state is None:
            self.load()
        state = self._state
        param = self._param

        try:
            outputs: List[np.ndarray] = list(state.backend.infer(img))
        except InferenceError as e:
            raise InvalidConfigurationError(f"Inference failed: {e}") from e

        post = Yolov4Postprocessor(
            Yolov4PostConfig(conf_threshold=param.confidence, nms_threshold=param.nms_threshold)
        )
        h, w = img.shape[:2]
        try:
            result = post.process(outputs, (w, h), state.class_names, state.colors, task_name=self.name)
        except ValueError as e:
            raise InvalidConfigurationError(f"Unexpected network output: {e}") from e

        logger.debug("%s: %d detections", self.name, len(result))
        return result
