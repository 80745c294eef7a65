"""
Central pytest configuration for the Ebers test suite.

Environment variables are set before any ``ebers`` module is imported so the
lazy engine points at an in-memory SQLite database and rate limiting, file
logging and metrics stay off.
"""

import os

# Test database configuration (set early so import-time config sees it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["LOG_TO_FILE"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ.pop("SENTRY_DSN", None)

from tests.config.markers import pytest_configure  # noqa: E402,F401
from tests.fixtures.database_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.domain_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.service_fixtures import *  # noqa: E402,F401,F403
