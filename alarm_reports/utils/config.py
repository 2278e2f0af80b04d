from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    "project": {"name": "alarm-open-close-report"},
    "logging": {"level": "INFO"},
    "input": {
        "path": None,
        "file_globs": ["*.xlsx", "*.xls", "*.csv"],
        "sheet": 0,
    },
    "report": {
        "uf": "SE",
        "windows": {
            "opening": {"start": "05:30:00", "end": "08:30:00"},
            "closing": {"start": "22:30:00", "end": "01:30:00"},
        },
        "progress": False,
    },
    "output": {
        "report": None,
        "meta": None,
    },
}


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML root must be a mapping/dict: {path}")
    return data


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merges override into base (override wins).
    """
    out = dict(base)
    for k, v in override.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, Mapping):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _load_with_parents(path: Path) -> Dict[str, Any]:
    cfg = load_yaml(path)

    extends = cfg.pop("extends", None)
    merged: Dict[str, Any] = {}

    if extends:
        if isinstance(extends, (str, Path)):
            parents = [extends]
        elif isinstance(extends, list):
            parents = extends
        else:
            raise ValueError("Config key 'extends' must be a string or a list of strings.")

        for parent in parents:
            parent_path = Path(parent)
            if not parent_path.is_absolute():
                parent_path = (path.parent / parent_path).resolve()
            merged = _deep_merge(merged, _load_with_parents(parent_path))

    return _deep_merge(merged, cfg)


def load_config(path: Union[str, Path, None] = None) -> Dict[str, Any]:
    """
    Loads a YAML config on top of DEFAULT_CONFIG, with optional inheritance via:
      extends: "base.yaml"
    or
      extends:
        - "base.yaml"
        - "other.yaml"

    Paths in 'extends' are resolved relative to the current config file.
    Without a path the defaults are returned as-is.
    """
    merged = copy.deepcopy(DEFAULT_CONFIG)
    merged["_meta"] = {"config_path": None}
    if path is None:
        return merged

    path = Path(path)
    merged = _deep_merge(merged, _load_with_parents(path))
    merged["_meta"] = {"config_path": str(path.resolve())}
    return merged


def ensure_dirs(cfg: Dict[str, Any]) -> None:
    """
    Creates parent directories for the configured output files.
    Safe to call multiple times.
    """
    output = cfg.get("output", {}) or {}
    if isinstance(output, dict):
        for p in output.values():
            if isinstance(p, (str, Path)) and str(p).strip():
                Path(p).parent.mkdir(parents=True, exist_ok=True)
