import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask

# Load .env before config constants are computed
load_dotenv()

from ebers import __version__  # noqa: E402
from ebers.controllers.consultations_controller import consultations_bp  # noqa: E402
from ebers.controllers.dashboard_controller import dashboard_bp  # noqa: E402
from ebers.controllers.dependencies import register_session_teardown  # noqa: E402
from ebers.controllers.financial_controller import financial_bp  # noqa: E402
from ebers.controllers.health_controller import health_bp  # noqa: E402
from ebers.controllers.patients_controller import patients_bp  # noqa: E402
from ebers.core import config  # noqa: E402
from ebers.core.api_utils import register_error_handlers  # noqa: E402
from ebers.core.limiter_config import create_limiter  # noqa: E402
from ebers.core.logging_config import setup_logging  # noqa: E402
from ebers.db.session import create_tables  # noqa: E402

logger = logging.getLogger(__name__)


def _init_sentry(env: str) -> None:
    sentry_dsn = config.get_sentry_dsn()
    if not sentry_dsn:
        logger.info(
            "Sentry not initialized (SENTRY_DSN not set)",
            extra={"context": {"environment": env}},
        )
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=env,
        release=__version__,
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Don't send PII by default
    )
    logger.info(
        "Sentry initialized",
        extra={"context": {"environment": env, "release": __version__}},
    )


def _init_metrics(app: Flask, env: str) -> None:
    if not app.config.get("METRICS_ENABLED", config.get_metrics_enabled()):
        return

    from prometheus_client import CollectorRegistry
    from prometheus_flask_exporter import PrometheusMetrics

    # Registry per app: create_app can run many times in one process
    metrics = PrometheusMetrics(app, registry=CollectorRegistry())
    metrics.info(
        "app_info", "Application information", version=__version__, environment=env
    )
    app.extensions["metrics"] = metrics
    logger.info(
        "Prometheus metrics initialized",
        extra={"context": {"metrics_endpoint": "/metrics"}},
    )


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Application factory.

    ``overrides`` is merged into ``app.config`` before any extension is
    initialised (tests pass ``TESTING`` and ``RATE_LIMIT_ENABLED`` here).
    """
    app = Flask(__name__)
    env = os.getenv("FLASK_ENV", "production")

    app.config.update(
        RATE_LIMIT_ENABLED=config.get_rate_limit_enabled(),
        RATE_LIMIT_DEFAULT=config.get_rate_limit_default(),
        METRICS_ENABLED=config.get_metrics_enabled(),
    )
    if overrides:
        app.config.update(overrides)
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    setup_logging(
        app,
        log_level=config.get_log_level(),
        log_to_file=config.get_log_to_file(),
        use_json_format=config.get_log_json(),
    )
    config.log_timezone_config()
    config.log_observability_config()

    _init_sentry(env)
    _init_metrics(app, env)

    limiter = create_limiter(app)
    limiter.exempt(health_bp)

    register_error_handlers(app)
    register_session_teardown(app)

    for blueprint in (
        patients_bp,
        consultations_bp,
        financial_bp,
        dashboard_bp,
        health_bp,
    ):
        app.register_blueprint(blueprint)

    @app.cli.command("init-db")
    def init_db_command():
        """Create all database tables."""
        create_tables()
        logger.info("Database tables created")

    logger.info(
        "Application created",
        extra={
            "context": {
                "environment": env,
                "rate_limit": app.config["RATE_LIMIT_ENABLED"],
            }
        },
    )
    return app
