"""Repository for link storage and retrieval."""
import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from notegraph.exceptions import ErrorCode, LinkError, NoteNotFoundError
from notegraph.models.db_models import DBLink, DBNote
from notegraph.models.schema import Link, Note, ensure_timezone_aware, utc_now
from notegraph.storage.base import Repository
from notegraph.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


class LinkRepository(Repository):
    """Repository for directed links between notes.

    Enforces the edge invariants itself (both endpoints exist, no self-loop,
    one edge per ordered pair) even though the link synchronizer checks them
    first. The database carries the same rules as constraints.
    """

    @staticmethod
    def _db_link_to_model(db_link: DBLink) -> Link:
        return Link(
            id=db_link.id,
            source_id=db_link.source_note_id,
            target_id=db_link.target_note_id,
            created_at=ensure_timezone_aware(db_link.created_at),
        )

    @staticmethod
    def _pair(source_id: int, target_id: int):
        return (DBLink.source_note_id == source_id) & (DBLink.target_note_id == target_id)

    def create(
        self, source_id: int, target_id: int, session: Optional[Session] = None
    ) -> Link:
        """Create a link from ``source_id`` to ``target_id``.

        Raises:
            LinkError: If source and target are the same note, or the link
                already exists.
            NoteNotFoundError: If either note does not exist or is deleted.
        """
        if source_id == target_id:
            raise LinkError(
                "A note cannot link to itself",
                source_id=source_id,
                target_id=target_id,
                code=ErrorCode.LINK_SELF_REFERENCE,
            )

        with self._scope(session, "create_link") as s:
            for note_id, role in ((source_id, "Source"), (target_id, "Target")):
                live = s.scalar(
                    select(DBNote.id).where(
                        (DBNote.id == note_id) & DBNote.is_deleted.is_(False)
                    )
                )
                if live is None:
                    raise NoteNotFoundError(
                        note_id, f"{role} note with ID {note_id} not found"
                    )

            if self.exists(source_id, target_id, session=s):
                raise LinkError(
                    f"Link already exists: {source_id} -> {target_id}",
                    source_id=source_id,
                    target_id=target_id,
                    code=ErrorCode.LINK_ALREADY_EXISTS,
                )

            db_link = DBLink(
                source_note_id=source_id,
                target_note_id=target_id,
                created_at=utc_now(),
            )
            s.add(db_link)
            s.flush()
            link = self._db_link_to_model(db_link)

        logger.debug(f"Created link {link.id} ({source_id} -> {target_id})")
        return link

    def get(self, source_id: int, target_id: int) -> Optional[Link]:
        """Get the link between two notes, if any."""
        with self.session_factory() as session:
            db_link = session.scalar(select(DBLink).where(self._pair(source_id, target_id)))
            if not db_link:
                return None
            return self._db_link_to_model(db_link)

    def get_by_id(self, link_id: int) -> Optional[Link]:
        """Get a link by its ID."""
        with self.session_factory() as session:
            db_link = session.get(DBLink, link_id)
            if not db_link:
                return None
            return self._db_link_to_model(db_link)

    def exists(
        self, source_id: int, target_id: int, session: Optional[Session] = None
    ) -> bool:
        """Check whether a link from ``source_id`` to ``target_id`` exists."""
        query = select(DBLink.id).where(self._pair(source_id, target_id))
        if session is not None:
            return session.scalar(query) is not None
        with self.session_factory() as s:
            return s.scalar(query) is not None

    def get_outgoing(self, note_id: int) -> List[Link]:
        """Get all outgoing links from a note, newest first."""
        with self.session_factory() as session:
            db_links = session.scalars(
                select(DBLink)
                .where(DBLink.source_note_id == note_id)
                .order_by(DBLink.created_at.desc(), DBLink.id.desc())
            ).all()
            return [self._db_link_to_model(link) for link in db_links]

    def get_incoming(self, note_id: int) -> List[Link]:
        """Get all incoming links to a note, newest first."""
        with self.session_factory() as session:
            db_links = session.scalars(
                select(DBLink)
                .where(DBLink.target_note_id == note_id)
                .order_by(DBLink.created_at.desc(), DBLink.id.desc())
            ).all()
            return [self._db_link_to_model(link) for link in db_links]

    def outgoing_target_ids(
        self, note_id: int, session: Optional[Session] = None
    ) -> Set[int]:
        """Get the ids of every note that ``note_id`` currently links to."""
        query = select(DBLink.target_note_id).where(DBLink.source_note_id == note_id)
        if session is not None:
            return set(session.scalars(query).all())
        with self.session_factory() as s:
            return set(s.scalars(query).all())

    def delete_by_id(self, link_id: int, session: Optional[Session] = None) -> bool:
        """Delete a link by its ID.

        Returns:
            True if a link was deleted, False if there was none.
        """
        with self._scope(session, "delete_link") as s:
            result = s.execute(delete(DBLink).where(DBLink.id == link_id))
            deleted = result.rowcount > 0
        if deleted:
            logger.debug(f"Deleted link {link_id}")
        return deleted

    def delete(
        self, source_id: int, target_id: int, session: Optional[Session] = None
    ) -> bool:
        """Delete the link between two notes.

        Returns:
            True if a link was deleted, False if there was none.
        """
        with self._scope(session, "delete_link") as s:
            result = s.execute(delete(DBLink).where(self._pair(source_id, target_id)))
            deleted = result.rowcount > 0
        if deleted:
            logger.debug(f"Deleted link {source_id} -> {target_id}")
        return deleted

    def delete_targets(
        self, source_id: int, target_ids: Iterable[int], session: Optional[Session] = None
    ) -> int:
        """Delete the links from ``source_id`` to each of ``target_ids``.

        Returns:
            Number of links deleted.
        """
        targets = set(target_ids)
        if not targets:
            return 0
        with self._scope(session, "delete_links") as s:
            result = s.execute(
                delete(DBLink).where(
                    (DBLink.source_note_id == source_id)
                    & DBLink.target_note_id.in_(targets)
                )
            )
            return result.rowcount

    def delete_all_for_note(self, note_id: int, session: Optional[Session] = None) -> int:
        """Delete all links (incoming and outgoing) for a note.

        Returns:
            Number of links deleted.
        """
        with self._scope(session, "delete_links_for_note") as s:
            result = s.execute(
                delete(DBLink).where(
                    or_(DBLink.source_note_id == note_id, DBLink.target_note_id == note_id)
                )
            )
            count = result.rowcount
        logger.debug(f"Deleted {count} links touching note {note_id}")
        return count

    def count_outgoing(self, note_id: int) -> int:
        """Count links whose source is ``note_id``."""
        with self.session_factory() as session:
            return session.scalar(
                select(func.count(DBLink.id)).where(DBLink.source_note_id == note_id)
            ) or 0

    def count_incoming(self, note_id: int) -> int:
        """Count links whose target is ``note_id``."""
        with self.session_factory() as session:
            return session.scalar(
                select(func.count(DBLink.id)).where(DBLink.target_note_id == note_id)
            ) or 0

    def find_outgoing_notes(self, note_id: int) -> List[Note]:
        """Find the live notes that ``note_id`` links to, ordered by title."""
        with self.session_factory() as session:
            db_notes = session.scalars(
                select(DBNote)
                .join(DBLink, DBNote.id == DBLink.target_note_id)
                .where(DBLink.source_note_id == note_id)
                .where(DBNote.is_deleted.is_(False))
                .order_by(DBNote.title.asc())
            ).all()
            return [NoteRepository._db_note_to_model(db_note) for db_note in db_notes]

    def find_incoming_notes(self, note_id: int) -> List[Note]:
        """Find the live notes that link to ``note_id``, ordered by title."""
        with self.session_factory() as session:
            db_notes = session.scalars(
                select(DBNote)
                .join(DBLink, DBNote.id == DBLink.source_note_id)
                .where(DBLink.target_note_id == note_id)
                .where(DBNote.is_deleted.is_(False))
                .order_by(DBNote.title.asc())
            ).all()
            return [NoteRepository._db_note_to_model(db_note) for db_note in db_notes]
