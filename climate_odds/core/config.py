from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Optional, Union


class ConfigError(RuntimeError):
    """Raised when the project configuration cannot be loaded or parsed."""


def load_project_config(path: Union[str, Path]) -> dict:
    """Return the parsed configuration dictionary from ``config.json``."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {config_path} contains invalid JSON.") from exc
    if not isinstance(config, Mapping):
        raise ConfigError(f"Config file {config_path} must contain a JSON object.")
    return dict(config)


def load_optional_config(path: Optional[Union[str, Path]]) -> dict:
    """Like :func:`load_project_config`, but a missing file (or no path) means defaults."""
    if path is None or not Path(path).exists():
        return {}
    return load_project_config(path)


def aggregation_setting(config: Mapping[str, object], key: str, default=None):
    """Read a setting from the ``aggregation`` section."""
    section = config.get("aggregation") if isinstance(config, Mapping) else None
    if not isinstance(section, Mapping):
        return default
    return section.get(key, default)
