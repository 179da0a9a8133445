"""Configuration module for the Gripp mirror."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
