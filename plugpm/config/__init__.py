"""
Plugins Manager Configuration - TOML-based settings.

This module provides:
- Schema declaration and validation of the [pm] table
- Settings loading with file values and explicit overrides
- Config file generation from the schema

Example usage:
    from plugpm.config import load_settings

    settings = load_settings(Path("pm.toml"), {"concurrency": 2})
    print(settings.manifest_path)
"""

from plugpm.config.settings import (
    DEFAULT_CONFIG_FILE,
    SETTINGS_SCHEMA,
    ConfigError,
    Settings,
    load_settings,
    write_default_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "SETTINGS_SCHEMA",
    "ConfigError",
    "Settings",
    "load_settings",
    "write_default_config",
]
