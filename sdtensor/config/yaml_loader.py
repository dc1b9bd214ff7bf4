"""Cached access to defaults.yaml

The file next to this module is used unless SDTENSOR_DEFAULTS_PATH points
at an existing file. Only yaml is imported here, so options.py and the
container can read defaults without import cycles.

Import Policy:
    from sdtensor.config.yaml_loader import get_default
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

_CONFIG_CACHE: dict[str, Any] | None = None


def _defaults_path() -> Path:
    env_path = os.getenv("SDTENSOR_DEFAULTS_PATH")
    if env_path and Path(env_path).exists():
        return Path(env_path)
    path = Path(__file__).parent / "defaults.yaml"
    if not path.exists():
        raise FileNotFoundError(f"defaults.yaml not found at {path}")
    return path


def _load() -> dict[str, Any]:
    with open(_defaults_path(), encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _config() -> dict[str, Any]:
    global _CONFIG_CACHE
    if _CONFIG_CACHE is None:
        _CONFIG_CACHE = _load()
    return _CONFIG_CACHE


def get_defaults() -> dict[str, Any]:
    """Shallow copy of the whole defaults mapping."""
    return _config().copy()


def get_default(key_path: str, default: Any = None) -> Any:
    """Value at a dotted path such as 'execution.n_workers', or default.

    Used for every BlasOptions field and for blas.dtype of new tensors.
    """
    value = _config()
    for key in key_path.split("."):
        if not isinstance(value, dict):
            return default
        value = value.get(key)
        if value is None:
            return default
    return value


def reload_defaults() -> None:
    """Re-read defaults.yaml, e.g. after changing SDTENSOR_DEFAULTS_PATH."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = _load()
