"""Configuration module for the SaaSBoard backend."""

from saasboard.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
