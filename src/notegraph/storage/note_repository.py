"""Repository for note storage and retrieval."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from notegraph.exceptions import NoteNotFoundError
from notegraph.models.db_models import DBNote
from notegraph.models.schema import Note, ensure_timezone_aware, utc_now
from notegraph.storage.base import Repository
from notegraph.utils import escape_like_pattern

logger = logging.getLogger(__name__)


class NoteRepository(Repository):
    """Repository for notes stored in the ``notes`` table.

    Deletion is soft: a deleted note keeps its row (and its id) but is
    invisible to every query here. Validation of titles happens in the
    service layer; this class only persists what it is given.
    """

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        """Convert a database row to a Note."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            content=db_note.content or "",
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
            deleted=bool(db_note.is_deleted),
        )

    @staticmethod
    def _live(query):
        return query.where(DBNote.is_deleted.is_(False))

    def _get_live_row(self, session: Session, note_id: int) -> Optional[DBNote]:
        return session.scalar(
            self._live(select(DBNote).where(DBNote.id == note_id))
        )

    def create(self, title: str, content: str = "", session: Optional[Session] = None) -> Note:
        """Create a new note and return it with its assigned id."""
        with self._scope(session, "create_note") as s:
            now = utc_now()
            db_note = DBNote(
                title=title,
                content=content,
                created_at=now,
                updated_at=now,
                is_deleted=False,
            )
            s.add(db_note)
            s.flush()
            note = self._db_note_to_model(db_note)

        logger.debug(f"Stored note {note.id} ('{note.title}')")
        return note

    def get(self, note_id: int, session: Optional[Session] = None) -> Optional[Note]:
        """Get a non-deleted note by ID."""
        if session is not None:
            db_note = self._get_live_row(session, note_id)
            return self._db_note_to_model(db_note) if db_note else None
        with self.session_factory() as s:
            db_note = self._get_live_row(s, note_id)
            return self._db_note_to_model(db_note) if db_note else None

    def get_by_title(self, title: str) -> Optional[Note]:
        """Get a non-deleted note by exact (case-sensitive) title."""
        with self.session_factory() as session:
            db_note = session.scalar(
                self._live(select(DBNote).where(DBNote.title == title))
            )
            if not db_note:
                return None
            return self._db_note_to_model(db_note)

    def exists(self, note_id: int, session: Optional[Session] = None) -> bool:
        """Check whether a non-deleted note with this ID exists."""
        query = self._live(select(DBNote.id).where(DBNote.id == note_id))
        if session is not None:
            return session.scalar(query) is not None
        with self.session_factory() as s:
            return s.scalar(query) is not None

    def resolve_titles(
        self, titles: Iterable[str], session: Optional[Session] = None
    ) -> Dict[str, int]:
        """Map each title that names a live note to that note's id.

        Titles with no matching note are simply absent from the result.
        """
        wanted = set(titles)
        if not wanted:
            return {}
        query = self._live(
            select(DBNote.title, DBNote.id).where(DBNote.title.in_(wanted))
        )
        if session is not None:
            rows = session.execute(query).all()
        else:
            with self.session_factory() as s:
                rows = s.execute(query).all()
        return {title: note_id for title, note_id in rows}

    def get_by_ids(self, ids: List[int]) -> List[Note]:
        """Get several non-deleted notes, preserving the order of ``ids``.

        IDs that are unknown or deleted are silently skipped.
        """
        if not ids:
            return []

        with self.session_factory() as session:
            db_notes = session.scalars(
                self._live(select(DBNote).where(DBNote.id.in_(ids)))
            ).all()
            id_to_note = {db_note.id: self._db_note_to_model(db_note) for db_note in db_notes}

        return [id_to_note[nid] for nid in ids if nid in id_to_note]

    def get_all(self, limit: Optional[int] = None, offset: int = 0) -> List[Note]:
        """Get all non-deleted notes, most recently updated first.

        Args:
            limit: Maximum number of notes to return. None for all notes.
            offset: Number of notes to skip (for pagination).
        """
        with self.session_factory() as session:
            query = self._live(select(DBNote)).order_by(
                DBNote.updated_at.desc(), DBNote.id.desc()
            )
            if offset > 0:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)

            db_notes = session.scalars(query).all()
            return [self._db_note_to_model(db_note) for db_note in db_notes]

    def search_by_title_part(self, substring: str) -> List[Note]:
        """Find notes whose title contains ``substring``, ordered by title.

        Matching is case-insensitive for ASCII letters (SQLite LIKE);
        ``%`` and ``_`` in the input are matched literally.
        """
        pattern = f"%{escape_like_pattern(substring)}%"
        with self.session_factory() as session:
            db_notes = session.scalars(
                self._live(select(DBNote))
                .where(DBNote.title.like(pattern, escape="\\"))
                .order_by(DBNote.title.asc())
            ).all()
            return [self._db_note_to_model(db_note) for db_note in db_notes]

    def count(self) -> int:
        """Count non-deleted notes."""
        with self.session_factory() as session:
            result = session.scalar(
                self._live(select(func.count(DBNote.id)))
            )
            return result or 0

    def update(
        self,
        note_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Note:
        """Replace the title and/or content of a note.

        ``updated_at`` only advances when a value actually changes, so
        writing identical text does not touch the row (or the search index).

        Raises:
            NoteNotFoundError: If the note does not exist or is deleted.
        """
        with self._scope(session, "update_note") as s:
            db_note = self._get_live_row(s, note_id)
            if db_note is None:
                raise NoteNotFoundError(note_id)

            changed = False
            if title is not None and title != db_note.title:
                db_note.title = title
                changed = True
            if content is not None and content != db_note.content:
                db_note.content = content
                changed = True
            if changed:
                db_note.updated_at = utc_now()
                s.flush()
                logger.debug(f"Updated note {note_id}")

            return self._db_note_to_model(db_note)

    def soft_delete(self, note_id: int, session: Optional[Session] = None) -> None:
        """Mark a note as deleted.

        Edge cleanup is the caller's job; NoteService.delete_note does both in
        one transaction.

        Raises:
            NoteNotFoundError: If the note does not exist or is already deleted.
        """
        with self._scope(session, "delete_note") as s:
            db_note = self._get_live_row(s, note_id)
            if db_note is None:
                raise NoteNotFoundError(note_id)
            db_note.is_deleted = True
            db_note.updated_at = utc_now()
            s.flush()
        logger.debug(f"Soft-deleted note {note_id}")
