"""Process-wide logging setup."""

from __future__ import annotations

import logging

from casinobot.core.config import LoggingSettings


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install a root handler once; later calls only adjust the level."""
    settings = settings or LoggingSettings()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=settings.level.upper(), format=settings.format)
    else:
        root.setLevel(settings.level.upper())
