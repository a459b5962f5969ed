"""Configuration management for rtserver.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides.
"""

from rtserver.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
