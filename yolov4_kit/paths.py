from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


PathLike = Union[str, Path]

ROOT_MARKERS = ("pyproject.toml", ".git")


def find_project_root() -> Path:
    """Nearest directory at or above cwd holding a root marker, else cwd."""

    cwd = Path.cwd().resolve()
    return next(
        (d for d in (cwd, *cwd.parents) if any((d / m).exists() for m in ROOT_MARKERS)),
        cwd,
    )


def resolve_path(path: PathLike, root: Optional[PathLike] = None) -> Path:
    """Absolute paths pass through; relative ones are taken from `root` (default: project root)."""

    p = Path(path)
    if p.is_absolute():
        return p
    base = Path(root).resolve() if root is not None else find_project_root()
    return (base / p).resolve()
