"""SQLAlchemy implementation of the transaction primitive."""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from ebers.core.exceptions import PersistenceError
from ebers.domain.interfaces import ITransactionManager

logger = logging.getLogger(__name__)


class SqlAlchemyTransactionManager(ITransactionManager):
    """Runs a block of repository calls as one commit on the shared session."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    @contextmanager
    def transaction(self, error_context: str = "Erro ao salvar dados"):
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                error_context,
                extra={"context": {"error": str(e), "error_type": type(e).__name__}},
                exc_info=True,
            )
            raise PersistenceError(f"{error_context}: {e}") from e
        except Exception:
            self.db.rollback()
            raise
