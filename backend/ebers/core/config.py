"""
Centralized configuration module for application-wide settings.

Environment variables are read through small getter functions and cached in
module-level constants at import time. Call ``load_dotenv()`` before importing
this module (``ebers.main`` does) so values from ``.env`` are visible.
"""

import logging
import os
from decimal import Decimal
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer for {name}: {raw!r}. Using default {default}.",
            extra={"context": {"variable": name, "value": raw}},
        )
        return default


# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from the ``TZ`` environment variable.

    Used to decide what "today" is when computing patient ages. Timestamps
    are always stored in UTC regardless of this setting.

    Examples:
        >>> # In .env file:
        >>> # TZ=America/Sao_Paulo
        >>> tz = get_app_timezone()
    """
    tz_name = os.getenv("TZ", "America/Sao_Paulo")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


APP_TZ = get_app_timezone()


def log_timezone_config():
    """Log the active timezone configuration at startup."""
    logger.info(
        "Timezone configuration initialized",
        extra={"context": {"timezone": str(APP_TZ)}},
    )


# ===========================
# Database Configuration
# ===========================

DEFAULT_DATABASE_URL = "sqlite:///ebers.db"


def get_database_url() -> str:
    """Return ``DATABASE_URL``, read on every call so tests can override it."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_slow_query_threshold_ms() -> int:
    return _env_int("SLOW_QUERY_THRESHOLD_MS", 100)


def slow_query_alerts_enabled() -> bool:
    return _env_flag("SLOW_QUERY_ALERTS_ENABLED", "true")


# ===========================
# Rate Limiting Configuration
# ===========================


def get_rate_limit_enabled() -> bool:
    """
    Whether request rate limiting is active.

    Environment Variables:
        RATE_LIMIT_ENABLED: "0"/"false" disables the limiter (tests do this).
    """
    return _env_flag("RATE_LIMIT_ENABLED", "true")


def get_rate_limit_default() -> str:
    return os.getenv("RATE_LIMIT_DEFAULT", "200 per minute")


def get_rate_limit_storage_uri() -> str:
    return os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")


# ===========================
# Observability Configuration
# ===========================


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_to_file() -> bool:
    return _env_flag("LOG_TO_FILE", "false")


def get_log_json() -> bool:
    return _env_flag("LOG_JSON", "false")


def get_sentry_dsn() -> str | None:
    dsn = os.getenv("SENTRY_DSN", "").strip()
    return dsn or None


def get_metrics_enabled() -> bool:
    return _env_flag("METRICS_ENABLED", "true")


def log_observability_config():
    """Log which optional integrations are switched on."""
    logger.info(
        "Observability configuration initialized",
        extra={
            "context": {
                "log_level": get_log_level(),
                "log_to_file": get_log_to_file(),
                "json_logs": get_log_json(),
                "sentry": bool(get_sentry_dsn()),
                "metrics": get_metrics_enabled(),
                "rate_limit": get_rate_limit_enabled(),
            }
        },
    )


# ===========================
# Business Constants
# ===========================

# Listing
DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100
SEARCH_MIN_LENGTH = 2
SEARCH_RESULT_LIMIT = 10
RECENT_CONSULTATIONS_LIMIT = 3

# Money (fixed-point, two decimal places)
MONEY_QUANTUM = Decimal("0.01")
MAX_PRICE = Decimal("99999.99")
PRICE_EPSILON = Decimal("0.01")

# Credits
MAX_CREDITS_PER_SALE = 100

# Consultation text fields
MAX_CONSULTATION_TEXT_LENGTH = 10000
