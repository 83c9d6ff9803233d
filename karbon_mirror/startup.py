"""Startup validation shared by the web app and the CLI."""

from __future__ import annotations

import logging

from .api.client import KarbonConfigError
from .config import KarbonSettings, settings
from .sync.registry import validate_registry

logger = logging.getLogger(__name__)


def validate_startup(cfg: KarbonSettings | None = None) -> list[str]:
    """Fail fast on a broken registry or unusable settings; return warnings."""
    cfg = cfg or settings
    validate_registry()

    errors = cfg.config_errors()
    if errors:
        raise KarbonConfigError("Invalid configuration: " + "; ".join(errors))

    warnings = cfg.config_warnings()
    for warning in warnings:
        logger.warning(warning)
    return warnings
