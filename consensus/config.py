"""
Configuration management for consensus engines
"""

import copy
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from consensus.threshold import angular_threshold_degrees, pixel_threshold

DEFAULT_CONFIG = {
    "ransac": {
        "threshold": 1.0,
        "probability": 0.99,
        "max_iterations": 1000,
        "max_degenerate_samples": 50,
        "time_budget": None,
        "refine": True,
        "seed": None
    },
    "grouped": {
        "partition": None
    },
    "lmeds": {
        "max_iterations": 500
    },
    "parallel": {
        "workers": 4,
        "batch_size": 16
    },
    "threshold": {
        "angular_tolerance_deg": None,
        "pixel_tolerance": None,
        "focal_length": None
    },
    "logging": {
        "name": "consensus",
        "level": "INFO",
        "file": None,
        "session_dir": None
    }
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML config file on top of DEFAULT_CONFIG.

    Args:
        path: Path to a YAML file; missing sections keep their defaults

    Returns:
        Complete configuration dictionary
    """
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at top level")
    return merge_config(DEFAULT_CONFIG, data)


def save_config(config: Dict[str, Any], path: Union[str, Path]):
    """Write a configuration dictionary as YAML."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.safe_dump(config, f, sort_keys=False)


def resolve_threshold(config: Dict[str, Any]) -> float:
    """
    Residual cutoff from a config.

    An angular or pixel tolerance in the `threshold` section takes precedence
    over the raw `ransac.threshold` value.
    """
    section = config.get("threshold", {}) or {}
    if section.get("angular_tolerance_deg") is not None:
        return angular_threshold_degrees(float(section["angular_tolerance_deg"]))
    if section.get("pixel_tolerance") is not None:
        if section.get("focal_length") is None:
            raise ValueError("threshold.pixel_tolerance requires threshold.focal_length")
        return pixel_threshold(float(section["pixel_tolerance"]), float(section["focal_length"]))
    return float(config.get("ransac", {}).get("threshold", DEFAULT_CONFIG["ransac"]["threshold"]))
