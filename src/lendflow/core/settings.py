"""Process-wide settings accessor.

Usage:
    from lendflow.core.settings import get_settings

    settings = get_settings()
    if settings.uses_object_store:
        ...

Settings are read from the environment once and cached. Tests reset the
cache with clear_settings_cache().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from lendflow.core.config import ConfigValidationError, Settings, validate_settings

logger = logging.getLogger(__name__)


def _describe(error: ValidationError) -> str:
    return "\n".join(
        f"  - {'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, validate and cache the settings.

    Raises:
        SystemExit: If the environment holds an invalid configuration.
            The service refuses to start rather than run misconfigured.
    """
    logger.info("Loading Lendflow settings from environment")
    try:
        settings = Settings()
        validate_settings(settings)
    except ValidationError as e:
        logger.critical("Invalid Lendflow configuration:\n%s", _describe(e))
        raise SystemExit(1) from e
    except ConfigValidationError as e:
        logger.critical("Invalid Lendflow configuration: %s", e)
        raise SystemExit(1) from e
    return settings


def clear_settings_cache() -> None:
    get_settings.cache_clear()

