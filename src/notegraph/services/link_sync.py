"""Derivation of a note's outgoing links from its content."""
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

from sqlalchemy.orm import Session

from notegraph.exceptions import NoteNotFoundError
from notegraph.observability import timed_operation
from notegraph.services.wikilinks import extract_wiki_links
from notegraph.storage.base import transaction
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one synchronization of a note's outgoing links."""
    note_id: int
    created: Set[int] = field(default_factory=set)
    deleted: Set[int] = field(default_factory=set)
    unresolved: Set[str] = field(default_factory=set)

    @property
    def changed(self) -> bool:
        """Whether any link was written."""
        return bool(self.created or self.deleted)


class LinkSynchronizer:
    """Keeps a note's outgoing links equal to the wiki-links in its content.

    Each call re-derives the wanted edge set from the full content and the
    current title lookup, then applies the difference against the stored
    edges. Titles that name no live note are skipped; a note never links to
    itself. The whole diff is applied in one transaction.

    Every outgoing edge is treated as content-derived: an edge created by
    hand is removed by the next sync whose content does not mention it.
    """

    def __init__(self, note_repository: NoteRepository, link_repository: LinkRepository):
        self.notes = note_repository
        self.links = link_repository

    def sync(
        self, note_id: int, content: Optional[str], session: Optional[Session] = None
    ) -> SyncResult:
        """Bring the outgoing links of ``note_id`` in line with ``content``.

        Calling this twice with the same content writes nothing the second
        time.

        Args:
            note_id: Source note.
            content: The note's current content.
            session: Transaction to join. A new one is opened if None.

        Returns:
            The edges created and deleted, and the titles that did not resolve.

        Raises:
            NoteNotFoundError: If the note does not exist or is deleted.
            StorageError: If the database rejects a write; nothing is applied.
        """
        if session is None:
            with transaction(self.notes.session_factory, "sync_links") as own_session:
                return self.sync(note_id, content, session=own_session)

        with timed_operation("sync_links", note_id=note_id) as op:
            if not self.notes.exists(note_id, session=session):
                raise NoteNotFoundError(note_id)

            titles = extract_wiki_links(content)
            resolved = self.notes.resolve_titles(titles, session=session)
            wanted_ids = {target for target in resolved.values() if target != note_id}
            current_ids = self.links.outgoing_target_ids(note_id, session=session)

            result = SyncResult(
                note_id=note_id,
                unresolved={title for title in titles if title not in resolved},
            )
            for title in sorted(result.unresolved):
                logger.debug(f"No note found for wiki-link '{title}' in note {note_id}")

            to_delete = current_ids - wanted_ids
            if to_delete:
                self.links.delete_targets(note_id, to_delete, session=session)
                result.deleted = to_delete
                for target_id in sorted(to_delete):
                    logger.debug(f"Deleted link {note_id} -> {target_id}")

            for target_id in sorted(wanted_ids - current_ids):
                if self.links.exists(note_id, target_id, session=session):
                    continue
                self.links.create(note_id, target_id, session=session)
                result.created.add(target_id)

            op["created"] = len(result.created)
            op["deleted"] = len(result.deleted)

        if result.changed:
            logger.info(
                f"Synced links for note {note_id}: {len(wanted_ids)} links "
                f"(+{len(result.created)} / -{len(result.deleted)})"
            )
        return result
