"""Environment-driven settings for the progress tracker."""
from __future__ import annotations

import logging
import os

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_ADMIN_ROLE = "admin"
DEFAULT_MAX_UPLOAD_BYTES = 1 * 1024 * 1024  # 1 MB


def get_log_level() -> int:
    """Return the configured logging level, defaulting to INFO."""

    override = os.environ.get("LOG_LEVEL")
    if override and override.strip():
        level = logging.getLevelName(override.strip().upper())
        if isinstance(level, int):
            return level
    return logging.getLevelName(DEFAULT_LOG_LEVEL)


def get_admin_role() -> str:
    """Return the role name that grants admin access."""

    override = os.environ.get("TRACKER_ADMIN_ROLE")
    if override and override.strip():
        return override.strip().lower()
    return DEFAULT_ADMIN_ROLE


def get_max_upload_bytes() -> int:
    override = os.environ.get("TRACKER_MAX_UPLOAD_BYTES")
    if override and override.strip():
        try:
            value = int(override.strip())
        except ValueError:
            return DEFAULT_MAX_UPLOAD_BYTES
        if value > 0:
            return value
    return DEFAULT_MAX_UPLOAD_BYTES
