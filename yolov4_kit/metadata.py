from __future__ import annotations

from pathlib import Path
from typing import List, Union

from .exceptions import ModelLoadError


def load_class_names(labels_path: Union[str, Path]) -> List[str]:
    """
    Load class names from a Darknet-style labels file.

    One class name per line, line order gives the class index:

        person
        bicycle
        car
        ...

    Surrounding whitespace is stripped and blank lines are skipped.
    """

    path = Path(labels_path)
    if not path.is_file():
        raise ModelLoadError(f"Labels file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ModelLoadError(f"Cannot read labels file {path}: {e}") from e

    names: List[str] = [line.strip() for line in text.splitlines() if line.strip()]

    if not names:
        raise ModelLoadError(f"Labels file has no class names: {path}")
    return names
