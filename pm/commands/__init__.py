"""pm command implementations."""

__all__ = []
