from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Tuple, Union

from ..core.config import ConfigError, load_optional_config


def load_provider_config(
    config_path: Optional[Union[str, Path]],
    provider: str,
) -> Tuple[dict, Mapping[str, object]]:
    """
    Load the shared project config and return the provider sub-config.

    A missing config file, or a config without an entry for ``provider``, yields
    an empty provider mapping so clients fall back to their defaults.

    Args:
        config_path: Path to config.json (``None`` for defaults only).
        provider: Provider key (matches config.json.providers.*).
    """
    config = load_optional_config(config_path)

    providers = config.get("providers", {})
    if not isinstance(providers, Mapping):
        raise ConfigError("The 'providers' section must be an object.")

    provider_cfg = providers.get(provider, {})
    if not isinstance(provider_cfg, Mapping):
        raise ConfigError(f"Provider '{provider}' configuration must be an object.")

    return config, provider_cfg
