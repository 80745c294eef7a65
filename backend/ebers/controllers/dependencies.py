"""Per-request database session and service wiring for the blueprints."""

from flask import Flask, g

from ebers.db.session import SessionLocal
from ebers.services.container import ServiceContainer


def get_services() -> ServiceContainer:
    """Services bound to this request's session (opened on first use)."""
    if "services" not in g:
        g.db = SessionLocal()
        g.services = ServiceContainer.from_session(g.db)
    return g.services


def register_session_teardown(app: Flask) -> None:
    @app.teardown_appcontext
    def close_db_session(exception=None):
        g.pop("services", None)
        db = g.pop("db", None)
        if db is not None:
            db.close()
