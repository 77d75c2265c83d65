from __future__ import annotations

import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]

# Some pytest import modes do not put the repo root on sys.path, so
# `import yolov4_kit` would fail without an editable install.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(autouse=True)
def _default_model_folder(monkeypatch: pytest.MonkeyPatch) -> None:
    # Yolov4Param reads its model folder default from the environment.
    monkeypatch.delenv("YOLOV4_MODEL_FOLDER", raising=False)
