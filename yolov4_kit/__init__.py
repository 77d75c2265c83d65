"""
YOLOv4 object detection on top of OpenCV DNN.

The core (decode -> per-class NMS -> merge) is plain NumPy and works on the raw
output arrays of any YOLOv4 Darknet network. OpenCV is only needed to load and
run the network and for drawing.
"""

from .types import CandidateBox, Detection, DetectionSet
from .exceptions import (
    InferenceError,
    InvalidConfigurationError,
    InvalidInputError,
    ModelLoadError,
    Yolov4Error,
)
from .nms import NMSConfig, iou, nms
from .postprocess import Yolov4PostConfig, Yolov4Postprocessor, decode_outputs, merge_detections, suppress_candidates
from .config import Yolov4Param, load_param_file
from .runtime import Yolov4Detector, NetworkState, default_backend_factory, prepare_image
from .paths import find_project_root, resolve_path
from .metadata import load_class_names
from .visualize import draw_detections, generate_colors

__version__ = "1.3.0"

__all__ = [
    "CandidateBox",
    "Detection",
    "DetectionSet",
    "Yolov4Error",
    "InvalidInputError",
    "InvalidConfigurationError",
    "ModelLoadError",
    "InferenceError",
    "NMSConfig",
    "iou",
    "nms",
    "Yolov4PostConfig",
    "Yolov4Postprocessor",
    "decode_outputs",
    "merge_detections",
    "suppress_candidates",
    "Yolov4Param",
    "load_param_file",
    "Yolov4Detector",
    "NetworkState",
    "default_backend_factory",
    "prepare_image",
    "find_project_root",
    "resolve_path",
    "load_class_names",
    "draw_detections",
    "generate_colors",
]
