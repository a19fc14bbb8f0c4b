from __future__ import annotations

import os
from pathlib import Path

import yaml

from .models import RecapPolicy


BASE_DIR = Path(__file__).resolve().parents[1]
CONFIGS_DIR = Path(os.environ.get("RECAP_CONFIGS", BASE_DIR / "configs"))
DATA_DIR = Path(os.environ.get("RECAP_DATA", BASE_DIR / "data"))


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_policy(configs_dir: Path | None = None) -> RecapPolicy:
    """Read ``recap.yaml`` from the configs folder; defaults when absent."""
    path = (configs_dir or CONFIGS_DIR) / "recap.yaml"
    if not path.exists():
        return RecapPolicy()
    return RecapPolicy(**_load_yaml(path))
