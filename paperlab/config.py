from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .models import READING_LIST_COLOR, normalize_color


@dataclass
class Settings:
    db_path: Path
    pdf_dir: Path
    reference_delay_s: float = 0.2
    progress_debounce_s: float = 1.0
    reading_list_color: str = READING_LIST_COLOR


def _env_path(name: str, default: Path) -> Path:
    raw = (os.environ.get(name) or "").strip().strip("'\"")
    return Path(raw).expanduser().resolve() if raw else default


def _env_float(name: str, default: float) -> float:
    raw = str(os.environ.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        return default


def load_settings() -> Settings:
    home = _env_path("PAPERLAB_HOME", Path.home() / ".paperlab")
    return Settings(
        db_path=_env_path("PAPERLAB_DB_PATH", home / "paperlab.sqlite3"),
        pdf_dir=_env_path("PAPERLAB_PDF_DIR", home / "pdfs"),
        reference_delay_s=_env_float("PAPERLAB_REFERENCE_DELAY_S", 0.2),
        progress_debounce_s=_env_float("PAPERLAB_PROGRESS_DEBOUNCE_S", 1.0),
        reading_list_color=normalize_color(os.environ.get("PAPERLAB_READING_LIST_COLOR"), READING_LIST_COLOR),
    )
