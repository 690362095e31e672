"""
Plugins Manager Settings.

Settings are read from the [pm] table of a TOML file (pm.toml by default),
validated against SETTINGS_SCHEMA, then overridden by explicit values such
as command-line options.

Example pm.toml:
    [pm]
    registry_url = "https://plugins.example.org"
    plugins_dir = "plugins"
    concurrency = 4
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from plugpm.config.schema import (
    ConfigField,
    ValidationError,
    generate_default_config,
    validate_config,
)
from plugpm.config.toml_handler import TOMLError, generate_toml_from_schema, read_toml, write_toml

SETTINGS_SECTION = "pm"

DEFAULT_CONFIG_FILE = "pm.toml"

MANIFEST_FILE = "plugins.json"

LOCKFILE_FILE = "plugins-lock.json"

SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "registry_url": ConfigField(
        str, "http://localhost:8080", "Base URL of the plugin registry", min=1
    ),
    "api_version": ConfigField(str, "1", "Registry API version", min=1),
    "plugins_dir": ConfigField(
        str, "plugins", "Directory plugins are installed into", min=1
    ),
    "state_dir": ConfigField(
        str, ".", "Directory holding plugins.json and plugins-lock.json", min=1
    ),
    "temp_dir": ConfigField(
        str, "", "Parent directory of fetch workspaces (empty: system temp dir)"
    ),
    "timeout": ConfigField(
        float, 30.0, "Network timeout in seconds", min=1.0, max=600.0
    ),
    "concurrency": ConfigField(
        int, 4, "Plugins processed in parallel by batch operations", min=1, max=32
    ),
    "log_level": ConfigField(
        str,
        "info",
        "Minimum severity printed",
        choices=["info", "success", "warning", "error"],
    ),
    "log_format": ConfigField(
        str, "basic", "Console log format", choices=["basic", "json"]
    ),
}


class ConfigError(Exception):
    """Raised when settings cannot be loaded or are invalid."""

    pass


def _client_version() -> str:
    from plugpm import __version__

    return __version__


@dataclass(frozen=True)
class Settings:
    """
    Resolved plugins manager settings.

    Attributes:
        registry_url: Base URL of the plugin registry
        api_version: Registry API version
        plugins_dir: Directory plugins are installed into
        state_dir: Directory holding the manifest and lockfile
        temp_dir: Parent of fetch workspaces, None for the system default
        timeout: Network timeout in seconds
        concurrency: Parallelism of batch operations
        log_level: Minimum printed severity
        log_format: Console log format
        client_version: Version reported to the registry in the user agent
    """

    registry_url: str
    plugins_dir: Path
    state_dir: Path
    api_version: str = "1"
    temp_dir: Path | None = None
    timeout: float = 30.0
    concurrency: int = 4
    log_level: str = "info"
    log_format: str = "basic"
    client_version: str = ""

    @property
    def manifest_path(self) -> Path:
        return self.state_dir / MANIFEST_FILE

    @property
    def lockfile_path(self) -> Path:
        return self.state_dir / LOCKFILE_FILE

    @property
    def user_agent(self) -> str:
        return f"plugpm/{self.client_version or _client_version()}"


def _resolve_dir(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_settings(
    config_file: Path | None = None, overrides: dict[str, Any] | None = None
) -> Settings:
    """
    Load settings.

    Args:
        config_file: TOML file to read, None to use defaults only
        overrides: Values taking precedence over the file (None values ignored)

    Returns:
        Settings with directories resolved against the config file's folder
        (or the current directory)

    Raises:
        ConfigError: If the file is unreadable or a value is invalid
    """
    section: dict[str, Any] = {}
    base_dir = Path.cwd()

    if config_file is not None:
        try:
            data = read_toml(config_file)
        except TOMLError as e:
            raise ConfigError(str(e)) from e

        section = data.get(SETTINGS_SECTION, {})
        if not isinstance(section, dict):
            raise ConfigError(f"[{SETTINGS_SECTION}] in {config_file} must be a table")
        base_dir = config_file.resolve().parent

    merged = dict(section)
    merged.update({key: value for key, value in (overrides or {}).items() if value is not None})

    try:
        values = validate_config(merged, SETTINGS_SCHEMA)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    return Settings(
        registry_url=values["registry_url"],
        api_version=values["api_version"],
        plugins_dir=_resolve_dir(values["plugins_dir"], base_dir),
        state_dir=_resolve_dir(values["state_dir"], base_dir),
        temp_dir=_resolve_dir(values["temp_dir"], base_dir) if values["temp_dir"] else None,
        timeout=values["timeout"],
        concurrency=values["concurrency"],
        log_level=values["log_level"],
        log_format=values["log_format"],
    )


def write_default_config(config_file: Path) -> None:
    """
    Write a commented configuration file with default values.

    Raises:
        ConfigError: If the file cannot be written
    """
    document = generate_toml_from_schema(
        SETTINGS_SECTION, SETTINGS_SCHEMA, generate_default_config(SETTINGS_SCHEMA)
    )
    try:
        write_toml(config_file, document)
    except TOMLError as e:
        raise ConfigError(str(e)) from e
