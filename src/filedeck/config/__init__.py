"""Configuration management for filedeck.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides through the FILEDECK_ prefix.
"""

from filedeck.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
