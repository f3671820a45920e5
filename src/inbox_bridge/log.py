"""structlog setup shared by the CLI and the HTTP app."""

from __future__ import annotations

import logging

import structlog

from inbox_bridge.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog filtering from `settings.log_level`."""

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
