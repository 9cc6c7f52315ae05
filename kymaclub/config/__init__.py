"""Configuration loading."""

from .settings import Settings, ConfigurationError, SecretRedactionFilter

__all__ = ["Settings", "ConfigurationError", "SecretRedactionFilter"]
