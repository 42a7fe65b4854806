"""Load Settings from a YAML file, the environment and an optional .env file.

Precedence, lowest first: model defaults, the YAML file, then the
``GENKIT_*`` environment overrides. ``${VAR}`` and ``${VAR:-default}``
references inside YAML string values are expanded from the environment.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .settings import Settings

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "BEREAN_CONFIG"
DEFAULT_CONFIG_PATH = Path("config/berean.yaml")
DEFAULT_ENV_PATH = Path(".env")

ENV_OVERRIDES = {
    "GENKIT_ENDPOINT": ("genkit", "url"),
    "GENKIT_API_KEY": ("genkit", "api_key"),
}

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

_settings: Optional[Settings] = None


def _expand_env_vars(value: Any) -> Any:
    """Expand environment references in every string of a parsed YAML tree."""
    if isinstance(value, dict):
        return {key: _expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), value)
    return value


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for var_name, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(var_name)
        if not value:
            continue
        # An empty YAML section ("genkit:") parses as None.
        data[section] = dict(data.get(section) or {}, **{key: value})
        logger.debug(f"{section}.{key} overridden by ${var_name}")
    return data


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        logger.debug(f"No config file at {config_path}, using defaults")
        return {}
    data = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    logger.debug(f"Loaded configuration from {config_path}")
    return data


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> Settings:
    """Load settings and make them the process-wide instance.

    Args:
        config_path: YAML file (default: ``$BEREAN_CONFIG`` or
            config/berean.yaml). A missing file means defaults.
        env_path: dotenv file read before expansion (default: .env). Values
            already in the environment are not replaced.

    Returns:
        The loaded Settings.

    Raises:
        ValueError: If the YAML document is not a mapping.
        pydantic.ValidationError: If a value is out of range.
    """
    global _settings

    env_path = env_path or DEFAULT_ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = Path(os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)

    data = _apply_env_overrides(_expand_env_vars(_read_yaml(config_path)))
    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the loaded settings, falling back to defaults."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget the loaded settings (for tests)."""
    global _settings
    _settings = None
