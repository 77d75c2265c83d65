"""
Inference backends for yolov4_kit.

Backends are kept in a separate module so core functionality (decode/NMS/merge)
stays lightweight and can be used and tested without a network on disk.
"""

from __future__ import annotations

from .opencv_dnn_backend import OpenCvDnnBackend, OpenCvDnnBackendConfig

__all__ = ["OpenCvDnnBackend", "OpenCvDnnBackendConfig"]
