"""WSGI entry point (``gunicorn ebers.app:app``) and development server."""

import logging
import os

from ebers.db.session import create_tables
from ebers.main import create_app

logger = logging.getLogger(__name__)

app = create_app()


def main() -> None:
    """Create missing tables and serve the API with the Flask dev server."""
    create_tables()
    logger.info("Database tables ready")

    app.run(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        debug=os.getenv("FLASK_ENV") == "development",
    )


if __name__ == "__main__":
    main()
