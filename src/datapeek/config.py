"""datapeek configuration via environment variables.

Everything is read once from DATAPEEK_* variables when the module is
imported. Values that fail to parse fall back to their defaults with a
warning instead of stopping the service from starting.
"""

import os
import logging

from datapeek import __version__

logger = logging.getLogger("datapeek.config")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, expected an integer", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, expected a number", name, raw)
        return default


class Settings:
    """All configuration sourced from environment."""

    def __init__(self):
        # Core
        self.version = __version__
        self.log_level = os.environ.get("DATAPEEK_LOG_LEVEL", "info")
        self.api_port = _env_int("DATAPEEK_API_PORT", 3103)

        # Sampling
        self.default_size = _env_int("DATAPEEK_DEFAULT_SIZE", 10)
        self.chunk_size = _env_int("DATAPEEK_CHUNK_SIZE", 64 * 1024)

        # Public data portals are frequently misconfigured (self-signed or
        # expired certificates), so certificate checks are off unless asked.
        self.tls_verify = (
            os.environ.get("DATAPEEK_TLS_VERIFY", "false").lower() == "true"
        )

        # 0 disables the bound entirely
        self.request_timeout = _env_float("DATAPEEK_REQUEST_TIMEOUT", 0.0)

        self.temp_dir = os.environ.get("DATAPEEK_TEMP_DIR") or None


settings = Settings()
