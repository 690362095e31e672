"""
plugpm Registry - Plugin registry API client and entities.
"""

from plugpm.registry.client import RegistryClient
from plugpm.registry.entities import Author, EntityError, Plugin, Version, VersionList

__all__ = ["RegistryClient", "Author", "EntityError", "Plugin", "Version", "VersionList"]
