from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable


PROJECT_ROOT = Path(__file__).resolve().parents[3]
SRC_DIR = PROJECT_ROOT / "src"
DATA_DIR = Path(os.getenv("CASEFILE_DATA_DIR", PROJECT_ROOT / "data")).expanduser()

LOGS_DIR = DATA_DIR / "logs"
TMP_DIR = DATA_DIR / "tmp"
UPLOADS_DIR = DATA_DIR / "uploads"


def ensure_directories(directories: Iterable[Path]) -> None:
    """Create runtime directories if they do not exist yet."""

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PROJECT_ROOT",
    "SRC_DIR",
    "DATA_DIR",
    "LOGS_DIR",
    "TMP_DIR",
    "UPLOADS_DIR",
    "ensure_directories",
]
