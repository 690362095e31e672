"""
plugpm Plugin System - Plugin installation and local state.

This module handles:
- Version constraint parsing and resolution
- Manifest (plugins.json) and lockfile (plugins-lock.json) persistence
- Artifact fetching (registry archive, git checkout)
- Directory checksum verification
- Install/update/remove orchestration
"""

__all__ = []
