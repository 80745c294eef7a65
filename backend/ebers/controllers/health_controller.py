"""
Health controller - health check endpoint for monitoring.
"""

import logging

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ebers.core.api_utils import api_response
from ebers.db.session import SessionLocal

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/health")


@health_bp.route("", methods=["GET"])
def health_check():
    """
    Check that the database answers a trivial query.

    Status codes:
        200: database reachable
        503: database unreachable
    """
    db = None
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        return api_response(True, "ok", {"database": "up"})
    except SQLAlchemyError as e:
        logger.error(
            "Health check failed",
            extra={"context": {"endpoint": "/health", "error": str(e)}},
        )
        return api_response(False, "Banco de dados indisponível", {"database": "down"}, 503)
    finally:
        if db:
            db.close()
