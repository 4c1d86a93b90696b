"""Service layer for note lifecycle and link queries."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from notegraph.config import config
from notegraph.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    NoteValidationError,
    ValidationError,
)
from notegraph.models.schema import TITLE_LINE_BREAKS, Link, Note
from notegraph.observability import timed_operation, traced
from notegraph.services.link_sync import LinkSynchronizer
from notegraph.storage.base import transaction
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


def _require_id(value: Any, field: str = "note_id") -> int:
    """Reject missing or non-integer note ids before touching the store."""
    if value is None:
        raise ValidationError(
            f"{field} is required", field=field, code=ErrorCode.INVALID_ID
        )
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"{field} must be an integer", field=field, value=value,
            code=ErrorCode.INVALID_ID,
        )
    return value


class NoteService:
    """Facade over the note store, the link store and link synchronization.

    Every write runs in a single transaction together with the link changes
    it implies, so a failure leaves neither the note nor its edges half
    updated.
    """

    def __init__(
        self,
        note_repository: NoteRepository,
        link_repository: LinkRepository,
        synchronizer: Optional[LinkSynchronizer] = None,
    ):
        """Initialize the note service.

        Args:
            note_repository: Store for note records.
            link_repository: Store for directed links.
            synchronizer: Link synchronizer. Built from the two repositories
                if not given.
        """
        self.notes = note_repository
        self.links = link_repository
        self.synchronizer = synchronizer or LinkSynchronizer(
            note_repository, link_repository
        )

    def _transaction(self, operation: str):
        return transaction(self.notes.session_factory, operation)

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def validate_title(title: Optional[str]) -> str:
        """Check a title and return it with surrounding whitespace removed.

        Length and line breaks are checked on the title as given, before
        any trimming.

        Raises:
            NoteValidationError: If the title is blank, too long, or contains
                a line break.
        """
        if title is None or not title.strip():
            raise NoteValidationError(
                "Title is required", field="title", code=ErrorCode.NOTE_TITLE_REQUIRED
            )
        if len(title) > config.title_max_length:
            raise NoteValidationError(
                f"Title cannot be longer than {config.title_max_length} characters",
                field="title",
                value=title,
                code=ErrorCode.NOTE_TITLE_TOO_LONG,
            )
        if any(ch in title for ch in TITLE_LINE_BREAKS):
            raise NoteValidationError(
                "Title cannot contain line breaks",
                field="title",
                value=title,
                code=ErrorCode.NOTE_TITLE_INVALID,
            )
        return title.strip()

    def _check_title_free(
        self, title: str, session: Session, note_id: Optional[int] = None
    ) -> None:
        owner = self.notes.resolve_titles([title], session=session).get(title)
        if owner is not None and owner != note_id:
            raise NoteValidationError(
                f"A note with this title already exists: {title}",
                field="title",
                value=title,
                code=ErrorCode.NOTE_ALREADY_EXISTS,
            )

    # =========================================================================
    # Note lifecycle
    # =========================================================================

    @traced("create_note")
    def create_note(self, title: str, content: Optional[str] = "") -> Note:
        """Create a note and link it to the notes its content references.

        Args:
            title: Unique title of the new note.
            content: Note text; may be empty.

        Returns:
            The stored note.

        Raises:
            NoteValidationError: If the title is invalid or already taken.
            StorageError: If the database rejects the write.
        """
        title = self.validate_title(title)
        content = content or ""

        with self._transaction("create_note") as session:
            self._check_title_free(title, session)
            note = self.notes.create(title, content, session=session)
            self.synchronizer.sync(note.id, content, session=session)

        logger.info(f"Created note '{title}' (ID: {note.id})")
        return note

    @traced("update_note")
    def update_note(
        self,
        note_id: int,
        title: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Note:
        """Update the title and/or content of a note and re-sync its links.

        Args:
            note_id: ID of the note to update.
            title: New title (optional).
            content: New content (optional).

        Returns:
            The updated note.

        Raises:
            ValidationError: If ``note_id`` is missing or not an integer.
            NoteValidationError: If the new title is invalid or taken.
            NoteNotFoundError: If the note does not exist or is deleted.
        """
        note_id = _require_id(note_id)
        if title is not None:
            title = self.validate_title(title)

        with self._transaction("update_note") as session:
            if not self.notes.exists(note_id, session=session):
                raise NoteNotFoundError(note_id)
            if title is not None:
                self._check_title_free(title, session, note_id=note_id)
            note = self.notes.update(note_id, title=title, content=content, session=session)
            self.synchronizer.sync(note_id, note.content, session=session)

        logger.info(f"Updated note '{note.title}' (ID: {note_id})")
        return note

    @traced("update_note_content")
    def update_note_content(self, note_id: int, content: Optional[str]) -> Note:
        """Replace only the content of a note and re-sync its links.

        Raises:
            ValidationError: If ``note_id`` is missing or not an integer.
            NoteNotFoundError: If the note does not exist or is deleted.
        """
        note_id = _require_id(note_id)
        content = content or ""

        with self._transaction("update_note_content") as session:
            note = self.notes.update(note_id, content=content, session=session)
            self.synchronizer.sync(note_id, content, session=session)

        logger.debug(f"Updated content of note {note_id}")
        return note

    @traced("delete_note")
    def delete_note(self, note_id: int) -> None:
        """Soft-delete a note and remove every link that touches it.

        Raises:
            ValidationError: If ``note_id`` is missing or not an integer.
            NoteNotFoundError: If the note does not exist or is already deleted.
        """
        note_id = _require_id(note_id)

        with self._transaction("delete_note") as session:
            if not self.notes.exists(note_id, session=session):
                raise NoteNotFoundError(note_id)
            removed = self.links.delete_all_for_note(note_id, session=session)
            self.notes.soft_delete(note_id, session=session)

        logger.info(f"Deleted note {note_id} ({removed} links removed)")

    # =========================================================================
    # Note queries
    # =========================================================================

    def get_note(self, note_id: int) -> Optional[Note]:
        """Retrieve a live note by ID."""
        return self.notes.get(_require_id(note_id))

    def get_note_by_title(self, title: Optional[str]) -> Optional[Note]:
        """Retrieve a live note by exact title (surrounding whitespace ignored)."""
        if title is None or not title.strip():
            return None
        return self.notes.get_by_title(title.strip())

    def get_all_notes(self, limit: Optional[int] = None, offset: int = 0) -> List[Note]:
        """Get all live notes, most recently updated first.

        Args:
            limit: Maximum number of notes to return. None for all notes.
            offset: Number of notes to skip (for pagination).
        """
        return self.notes.get_all(limit=limit, offset=offset)

    def search_by_title_part(self, substring: Optional[str]) -> List[Note]:
        """Find notes whose title contains ``substring``, ordered by title.

        A blank substring returns every live note.
        """
        if substring is None or not substring.strip():
            return self.get_all_notes()
        return self.notes.search_by_title_part(substring.strip())

    def get_notes_count(self) -> int:
        """Get the number of live notes."""
        return self.notes.count()

    # =========================================================================
    # Links
    # =========================================================================

    def get_outgoing_linked_notes(self, note_id: int) -> List[Note]:
        """Notes that ``note_id`` links to, ordered by title."""
        return self.links.find_outgoing_notes(_require_id(note_id))

    def get_incoming_linked_notes(self, note_id: int) -> List[Note]:
        """Notes that link to ``note_id``, ordered by title."""
        return self.links.find_incoming_notes(_require_id(note_id))

    def get_outgoing_links_count(self, note_id: Optional[int]) -> int:
        if note_id is None:
            return 0
        return self.links.count_outgoing(_require_id(note_id))

    def get_incoming_links_count(self, note_id: Optional[int]) -> int:
        if note_id is None:
            return 0
        return self.links.count_incoming(_require_id(note_id))

    def link_exists(self, source_id: Optional[int], target_id: Optional[int]) -> bool:
        """Check for a link from ``source_id`` to ``target_id``."""
        if source_id is None or target_id is None:
            return False
        return self.links.exists(
            _require_id(source_id, "source_id"), _require_id(target_id, "target_id")
        )

    @traced("create_link")
    def create_link(self, source_id: int, target_id: int) -> Link:
        """Create a link by hand.

        The link is not backed by a wiki-link, so the next content sync of
        the source note removes it unless the content names the target.

        Raises:
            ValidationError: If an id is missing or not an integer.
            LinkError: If the ids are equal or the link already exists.
            NoteNotFoundError: If either note does not exist.
        """
        source_id = _require_id(source_id, "source_id")
        target_id = _require_id(target_id, "target_id")
        link = self.links.create(source_id, target_id)
        logger.info(f"Created link {source_id} -> {target_id}")
        return link

    @traced("delete_link")
    def delete_link(self, source_id: int, target_id: int) -> bool:
        """Remove the link from ``source_id`` to ``target_id``.

        Returns:
            True if a link was removed, False if there was none.
        """
        source_id = _require_id(source_id, "source_id")
        target_id = _require_id(target_id, "target_id")
        deleted = self.links.delete(source_id, target_id)
        if deleted:
            logger.info(f"Deleted link {source_id} -> {target_id}")
        return deleted

    def rebuild_links(self) -> Dict[str, int]:
        """Re-derive the outgoing links of every live note from its content.

        Repairs links that were dangling when written and have since become
        resolvable, and links left stale by title changes.

        Returns:
            Dict with keys: notes, created, deleted.
        """
        stats = {"notes": 0, "created": 0, "deleted": 0}
        with timed_operation("rebuild_links") as op:
            all_notes = self.notes.get_all()
            with self._transaction("rebuild_links") as session:
                for note in all_notes:
                    result = self.synchronizer.sync(note.id, note.content, session=session)
                    stats["notes"] += 1
                    stats["created"] += len(result.created)
                    stats["deleted"] += len(result.deleted)
            op.update(stats)

        logger.info(
            f"Rebuilt links for {stats['notes']} notes: "
            f"{stats['created']} created, {stats['deleted']} deleted"
        )
        return stats
