"""
Exception types raised by yolov4_kit.

Everything derives from `Yolov4Error` so callers can catch the whole family at
the application level. A failed run never returns partial detections.
"""


class Yolov4Error(Exception):
    """Base class for all yolov4_kit errors."""


class InvalidInputError(Yolov4Error):
    """
    The image handed to the detector is unusable.

    Raised when no image is given or when the image holds no pixel data.
    """


class InvalidConfigurationError(Yolov4Error):
    """
    A parameter value is malformed, or the network cannot be loaded/run with it.

    The detector also raises this when an inference call fails, since a bad
    network configuration is by far the most common cause.
    """


class ModelLoadError(InvalidConfigurationError):
    """Network structure/weights/labels files are missing or cannot be parsed."""


class InferenceError(Yolov4Error):
    """Raised by an inference backend when the forward pass fails."""
