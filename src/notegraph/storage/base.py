"""Shared session handling for the SQLAlchemy-backed repositories."""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from notegraph.exceptions import ErrorCode, StorageError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(session_factory: sessionmaker, operation: str) -> Iterator[Session]:
    """Run a block of work in one session transaction.

    Commits when the block finishes and rolls back when anything inside it
    raises. SQLAlchemy failures surface as StorageError; domain errors raised
    by the block pass through unchanged after the rollback. Nothing is retried.

    Args:
        session_factory: Session factory bound to the engine.
        operation: Name of the operation, used in logs and error details.
    """
    try:
        with session_factory.begin() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error(f"Database operation '{operation}' failed: {e}")
        raise StorageError(
            f"Database operation '{operation}' failed",
            operation=operation,
            code=ErrorCode.STORAGE_WRITE_FAILED,
            original_error=e,
        ) from e


class Repository:
    """Base class for repositories sharing one session factory.

    Write methods accept an optional ``session`` so that a caller can group
    several of them into a single transaction. Without one, each call runs in
    its own transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        """Initialize the repository.

        Args:
            session_factory: SQLAlchemy session factory for database operations.
        """
        self.session_factory = session_factory

    @contextmanager
    def _scope(self, session: Optional[Session], operation: str) -> Iterator[Session]:
        """Join the caller's transaction, or open a new one."""
        if session is not None:
            yield session
            return
        with transaction(self.session_factory, operation) as own_session:
            yield own_session
