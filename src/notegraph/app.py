"""Composition root: one engine shared by every repository and service."""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from notegraph.config import config
from notegraph.exceptions import ConfigurationError, ErrorCode, StorageError
from notegraph.models.db_models import get_session_factory, init_db
from notegraph.services.link_sync import LinkSynchronizer
from notegraph.services.note_service import NoteService
from notegraph.services.search_service import SearchService
from notegraph.storage.fts_index import FtsIndex
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


class NoteGraph:
    """Owns the database engine and the components built on top of it.

    Open one per process and close it on exit; the instance can also be
    used as a context manager.

    Example:
        with NoteGraph("sqlite://") as graph:
            graph.notes.create_note("Apple pie", "See [[Apple tree]]")
    """

    def __init__(self, db_url: Optional[str] = None):
        """Create the engine and wire the repositories and services.

        Args:
            db_url: SQLAlchemy URL. Defaults to ``config.get_db_url()``.

        Raises:
            ConfigurationError: If the configured database path is a directory.
            StorageError: If the database cannot be opened or initialized.
        """
        if db_url is None and not config.in_memory_db:
            db_path = config.get_absolute_path(config.database_path)
            if db_path.is_dir():
                raise ConfigurationError(
                    f"Database path is a directory: {db_path}",
                    config_key="database_path",
                )

        try:
            self.engine = init_db(db_url)
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise StorageError(
                "Failed to initialize database",
                operation="init_db",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                original_error=e,
            ) from e
        self.session_factory = get_session_factory(self.engine)

        self.note_repository = NoteRepository(self.session_factory)
        self.link_repository = LinkRepository(self.session_factory)
        self.fts_index = FtsIndex(self.engine, self.session_factory)

        self.synchronizer = LinkSynchronizer(self.note_repository, self.link_repository)
        self.notes = NoteService(
            self.note_repository, self.link_repository, self.synchronizer
        )
        self.search = SearchService(self.fts_index, self.note_repository)

    def close(self) -> None:
        """Release every pooled database connection."""
        self.engine.dispose()
        logger.debug("Database engine disposed")

    def __enter__(self) -> "NoteGraph":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
