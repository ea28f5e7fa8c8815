"""Cached settings accessor for shipproof.

Usage:
    from shipproof.core.settings import get_settings

    settings = get_settings()
    bucket = settings.s3.bucket

Settings are loaded once and cached. Tests reset them with
clear_settings_cache().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from shipproof.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and validate settings from the environment.

    Returns:
        Validated Settings instance.

    Raises:
        SystemExit: If settings cannot be loaded (fail-fast behavior).
    """
    try:
        logger.info("Loading application settings from environment")
        settings = Settings()  # type: ignore[call-arg]
        validate_settings(settings)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")

        logger.critical(
            "Configuration validation failed:\n%s",
            "\n".join(error_messages),
        )
        raise SystemExit(1) from e
    except ConfigValidationError as e:
        logger.critical(
            "Configuration validation failed: %s (field: %s)",
            e.message,
            e.field or "unknown",
        )
        raise SystemExit(1) from e

    logger.info(
        "Configuration loaded: environment=%s, bucket=%s, config_hash=%s",
        settings.environment.value,
        settings.s3.bucket,
        settings.get_config_hash()[:16] + "...",
    )
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    get_settings.cache_clear()
    logger.debug("Settings cache cleared")


def get_settings_safe() -> Settings | None:
    """Like get_settings(), but return None instead of exiting."""
    try:
        return get_settings()
    except SystemExit:
        return None
