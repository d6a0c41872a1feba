"""Make `src/` importable (`config`, `trading.*`, `transport.*`) without installing the project."""

from __future__ import annotations

import sys
from pathlib import Path

SRC_DIR = str(Path(__file__).resolve().parents[1] / "src")


def pytest_configure() -> None:
    if SRC_DIR not in sys.path:
        sys.path.insert(0, SRC_DIR)
