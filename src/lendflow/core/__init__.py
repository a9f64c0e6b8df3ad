"""Core configuration for Lendflow services."""

from lendflow.core.config import (
    ActivationSettings,
    AuthSettings,
    ConfigValidationError,
    DatabaseSettings,
    DocumentSettings,
    Environment,
    S3Settings,
    Settings,
    StorageBackend,
    validate_settings,
)
from lendflow.core.settings import clear_settings_cache, get_settings

__all__ = [
    "ActivationSettings",
    "AuthSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "DocumentSettings",
    "Environment",
    "S3Settings",
    "Settings",
    "StorageBackend",
    "clear_settings_cache",
    "get_settings",
    "validate_settings",
]
