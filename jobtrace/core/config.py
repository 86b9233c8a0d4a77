"""Configuration loading with layered overrides."""

from pathlib import Path
from typing import Any

import yaml


DEFAULTS: dict[str, Any] = {
    "namespace": None,
    "node_selector": "node-role.kubernetes.io/worker",
    "format": "plain",
    "color": True,
    "log_dir": None,
}


def load_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML config file if it exists."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def config_paths() -> list[Path]:
    """Config files in precedence order (first wins)."""
    return [
        Path(".jobtrace.yaml"),
        Path.home() / ".config" / "jobtrace" / "config.yaml",
    ]


def load_config() -> dict[str, Any]:
    """Merge all config layers into one dict, defaults underneath."""
    merged = dict(DEFAULTS)
    for path in reversed(config_paths()):
        merged.update(load_config_file(path))
    return merged
