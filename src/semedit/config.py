"""Configuration loading and auto-discovery."""
from pathlib import Path
from typing import Any, Dict, Optional
import os

try:  # Python 3.11+
    import tomllib
except ImportError:  # pragma: no cover - fallback for older environments
    import tomli as tomllib


def load_config() -> Optional[Dict[str, Any]]:
    """
    Load configuration from file.

    Priority:
    1. SEMEDIT_CONFIG environment variable
    2. ./semedit.toml (project config)
    3. ~/.config/semedit/config.toml (user config)

    Returns:
        Configuration dict or None if no config found
    """
    config_paths = []

    env_config = os.environ.get("SEMEDIT_CONFIG")
    if env_config:
        config_paths.append(Path(env_config))

    config_paths.append(Path("semedit.toml"))
    config_paths.append(Path.home() / ".config" / "semedit" / "config.toml")

    for path in config_paths:
        if path.exists():
            with open(path, "rb") as f:
                return tomllib.load(f)

    return None


DEFAULTS = {
    "cache": {
        "max_documents": 50,
        "force_eviction": False,  # Abort live operations to make room instead of raising CacheFull
    },
    "diff": {
        "max_lines": 100,
        "efficiency_min_lines": 10,  # Replacements shorter than this get no efficiency metric
        "efficiency_tip_percent": 30,
    },
    "operations": {
        "max_finished": 100,  # Committed/aborted operations kept for status queries
    },
    "suggestions": {
        "max_results": 5,
        "cutoff": 0.5,
    },
    "format": {
        "enabled": False,
        "timeout_seconds": 30,
    },
}


def _lookup(tree: Dict[str, Any], key: str) -> Any:
    value: Any = tree
    for part in key.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return None
    return value


def get_config_value(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dot-notation key.

    Falls back to DEFAULTS when the key is absent from the config file, then
    to `default`.

    Example:
        get_config_value("cache.max_documents")
        get_config_value("diff.max_lines", 100)
    """
    config = load_config()
    if config is not None:
        value = _lookup(config, key)
        if value is not None:
            return value

    value = _lookup(DEFAULTS, key)
    if value is not None:
        return value
    return default
