"""Shipproof core module.

Shared configuration used by the API, the services and the CLI.
"""

from shipproof.core.config import (
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    S3Settings,
    Settings,
    ShareLinkSettings,
    UploadSettings,
)
from shipproof.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "S3Settings",
    "Settings",
    "ShareLinkSettings",
    "UploadSettings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
