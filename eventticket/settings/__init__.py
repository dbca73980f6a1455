from __future__ import annotations

import importlib.metadata

from loguru import logger

from .eventticket import ReadOnlySettings, Settings, TransientSettings

settings = Settings()

try:
    settings.version = importlib.metadata.version("eventticket")
except importlib.metadata.PackageNotFoundError:
    logger.debug("eventticket is not installed, using default version")

if not settings.user_agent:
    settings.user_agent = f"eventticket/{settings.version}"

# printing environment variable for debugging
logger.debug("Environment Settings:")
for key, value in settings.model_dump(exclude_none=True).items():
    logger.debug(f"{key}: {value}")


__all__ = [
    "settings",
    # settings
    "Settings",
    "ReadOnlySettings",
    "TransientSettings",
]
