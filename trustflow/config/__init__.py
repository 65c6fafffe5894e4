"""
Configuration management for trustflow.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for timer periods and service configuration.
"""

from trustflow.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
