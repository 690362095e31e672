"""
pm - plugpm command-line interface.

Pacman-style front end for installing, updating, removing and querying
registry plugins.
"""

__all__ = []
