"""Request rate limiting, created per application instance."""

from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from ebers.core.config import (get_rate_limit_default,
                               get_rate_limit_enabled,
                               get_rate_limit_storage_uri)


def create_limiter(app: Flask) -> Limiter:
    """Build a Limiter bound to ``app``.

    ``RATE_LIMIT_ENABLED`` in ``app.config`` wins over the environment so
    tests can switch limiting off per application.
    """
    enabled = app.config.get("RATE_LIMIT_ENABLED", get_rate_limit_enabled())
    return Limiter(
        get_remote_address,
        app=app,
        default_limits=[app.config.get("RATE_LIMIT_DEFAULT", get_rate_limit_default())],
        storage_uri=get_rate_limit_storage_uri(),
        enabled=bool(enabled),
    )
