"""SQLAlchemy database models for NoteGraph."""
import logging
from typing import Optional

from sqlalchemy import (Boolean, CheckConstraint, Column, DateTime, ForeignKey,
                        Index, Integer, String, Text, UniqueConstraint,
                        create_engine, event, text)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from notegraph.config import config
from notegraph.models.schema import utc_now

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    # Relationships
    outgoing_links = relationship(
        "DBLink",
        foreign_keys="DBLink.source_note_id",
        back_populates="source",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    incoming_links = relationship(
        "DBLink",
        foreign_keys="DBLink.target_note_id",
        back_populates="target",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # Titles only have to be unique among live notes; AUTOINCREMENT keeps
    # SQLite from handing out the id of a removed row again.
    __table_args__ = (
        Index(
            "uq_notes_active_title",
            "title",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
        ),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, title='{self.title}', deleted={self.is_deleted})>"


class DBLink(Base):
    """Database model for a directed link between notes."""
    __tablename__ = "links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    source_note_id = Column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_note_id = Column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime, default=utc_now, nullable=False)

    # Relationships
    source = relationship(
        "DBNote", foreign_keys=[source_note_id], back_populates="outgoing_links"
    )
    target = relationship(
        "DBNote", foreign_keys=[target_note_id], back_populates="incoming_links"
    )

    # At most one edge per ordered pair, and never a self-loop
    __table_args__ = (
        UniqueConstraint("source_note_id", "target_note_id", name="uq_links_pair"),
        CheckConstraint(
            "source_note_id != target_note_id", name="ck_links_no_self_loop"
        ),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        """Return string representation of link."""
        return (
            f"<Link(id={self.id}, source={self.source_note_id}, "
            f"target={self.target_note_id})>"
        )


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and make sure the schema exists.

    File databases get WAL journaling and a small QueuePool. In-memory
    databases share one connection through StaticPool, otherwise every
    pooled connection would see its own empty database.

    Args:
        db_url: SQLAlchemy URL. Defaults to ``config.get_db_url()``.

    Returns:
        The configured engine.
    """
    url = db_url or config.get_db_url()
    in_memory = url in ("sqlite://", "sqlite:///:memory:")

    if in_memory:
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        # SQLite is single-writer, so a small pool is ideal
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_pre_ping=True,
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        # Required for ON DELETE CASCADE on links
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)

    # Create FTS5 virtual table for full-text search
    init_fts5(engine)

    logger.info(f"Database initialized: {url}")
    return engine


def init_fts5(engine: Engine) -> bool:
    """Initialize the FTS5 full-text search virtual table.

    The index keeps its own copy of title and content keyed by note id
    (the FTS rowid). Triggers keep it in lockstep with the notes table and
    drop a note from the index the moment it is soft-deleted.

    Returns:
        True if FTS5 is available, False if SQLite was built without it.
    """
    try:
        with engine.begin() as conn:
            conn.execute(text("""
                CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
                    title,
                    content
                )
            """))

            conn.execute(text("""
                CREATE TRIGGER IF NOT EXISTS notes_fts_ai
                AFTER INSERT ON notes WHEN NEW.is_deleted = 0 BEGIN
                    INSERT INTO notes_fts(rowid, title, content)
                    VALUES (NEW.id, NEW.title, NEW.content);
                END
            """))

            conn.execute(text("""
                CREATE TRIGGER IF NOT EXISTS notes_fts_au
                AFTER UPDATE OF title, content, is_deleted ON notes BEGIN
                    DELETE FROM notes_fts WHERE rowid = OLD.id;
                    INSERT INTO notes_fts(rowid, title, content)
                    SELECT NEW.id, NEW.title, NEW.content WHERE NEW.is_deleted = 0;
                END
            """))

            conn.execute(text("""
                CREATE TRIGGER IF NOT EXISTS notes_fts_ad
                AFTER DELETE ON notes BEGIN
                    DELETE FROM notes_fts WHERE rowid = OLD.id;
                END
            """))
    except OperationalError as e:
        logger.warning(f"FTS5 unavailable, search will use LIKE fallback: {e}")
        return False
    return True


def rebuild_fts_index(engine: Engine) -> int:
    """Rebuild the FTS5 index from the live (non-deleted) notes.

    Returns:
        Number of notes indexed.
    """
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM notes_fts"))
        conn.execute(text("""
            INSERT INTO notes_fts(rowid, title, content)
            SELECT id, title, content FROM notes WHERE is_deleted = 0
        """))
        count = conn.execute(text("SELECT COUNT(*) FROM notes_fts")).scalar()

    return count or 0


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
