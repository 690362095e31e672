"""
plugpm - Plugin package manager.

Installs, updates and removes plugins published on a plugin registry.
Declared plugins live in plugins.json, resolved releases in plugins-lock.json.
"""

__version__ = "0.1.0"

from plugpm.config import Settings, load_settings
from plugpm.errors import PluginsManagerError
from plugpm.logger import PluginsLogger, Severity, configure_logging
from plugpm.plugin.fetcher import Fetcher
from plugpm.plugin.installer import (
    BatchResult,
    Installer,
    InstallState,
    OperationResult,
    OperationStatus,
)
from plugpm.registry.client import RegistryClient

__all__ = [
    "__version__",
    "Settings",
    "load_settings",
    "PluginsManagerError",
    "PluginsLogger",
    "Severity",
    "configure_logging",
    "Fetcher",
    "BatchResult",
    "Installer",
    "InstallState",
    "OperationResult",
    "OperationStatus",
    "RegistryClient",
]
