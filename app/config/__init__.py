"""Configuration for the race research engine."""

from app.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
