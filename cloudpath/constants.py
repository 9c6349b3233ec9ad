"""Centralized constants for cloudpath."""

from __future__ import annotations

from typing import Final

VERSION: Final = "0.1.0"

# =============================================================================
# HTTP
# =============================================================================

DEFAULT_USER_AGENT: Final = f"cloudpath/{VERSION}"
DEFAULT_TIMEOUT_SECONDS: Final = 60.0

# =============================================================================
# Backoff
# =============================================================================

DEFAULT_INITIAL_DELAY_SECONDS: Final = 0.1
DEFAULT_MAX_ATTEMPTS: Final = 10
DEFAULT_MULTIPLIER: Final = 2.0

# =============================================================================
# Configuration Files
# =============================================================================

CONFIG_DIR_NAME: Final = ".cloudpath"
GLOBAL_CONFIG_NAME: Final = "defaults.toml"
PROJECT_CONFIG_NAME: Final = "cloudpath.toml"
