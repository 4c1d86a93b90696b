"""Service for ranked full-text search over notes."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from notegraph.config import SEARCH_LIMIT_MAX, config
from notegraph.models.schema import Note
from notegraph.observability import timed_operation
from notegraph.storage.fts_index import FtsIndex
from notegraph.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


@dataclass
class HighlightedResult:
    """A search hit with matched terms wrapped in highlight markers.

    Attributes:
        note: The matched note.
        highlighted_title: Full title with matches marked.
        highlighted_snippet: Short excerpt of the content around a match.
        score: bm25 relevance; lower is better.
    """

    note: Note
    highlighted_title: str
    highlighted_snippet: str
    score: float


class SearchService:
    """Ranked search over note titles and content.

    Results come back best match first (ascending score) and never include
    deleted notes. Blank queries return nothing without querying the index.
    """

    def __init__(self, fts_index: FtsIndex, note_repository: NoteRepository):
        self.index = fts_index
        self.notes = note_repository

    @property
    def has_fts(self) -> bool:
        """Whether ranked FTS5 search is active (False means LIKE fallback)."""
        return self.index.available

    def _run(
        self,
        operation: str,
        query: Optional[str],
        column: Optional[str] = None,
        highlight: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        if query is None or not query.strip():
            logger.debug(f"{operation}: blank query, returning no results")
            return []
        with timed_operation(operation, query=query[:50]) as op:
            hits = self.index.search(
                query,
                column=column,
                limit=min(limit or config.search_limit, SEARCH_LIMIT_MAX),
                highlight=highlight,
            )
            op["result_count"] = len(hits)
        return hits

    def _hydrate(self, hits: List[Dict[str, Any]]) -> List[Note]:
        return self.notes.get_by_ids([hit["id"] for hit in hits])

    def search(self, query: Optional[str], limit: Optional[int] = None) -> List[Note]:
        """Search titles and content.

        Args:
            query: User query. A single word matches as a prefix.
            limit: Maximum results (default ``config.search_limit``, at most 50).

        Returns:
            Matching notes, most relevant first.
        """
        return self._hydrate(self._run("search", query, limit=limit))

    def search_by_title(self, query: Optional[str], limit: Optional[int] = None) -> List[Note]:
        """Search titles only."""
        return self._hydrate(self._run("search_by_title", query, column="title", limit=limit))

    def search_by_content(self, query: Optional[str], limit: Optional[int] = None) -> List[Note]:
        """Search content only."""
        return self._hydrate(
            self._run("search_by_content", query, column="content", limit=limit)
        )

    def search_with_highlight(
        self,
        query: Optional[str],
        column: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[HighlightedResult]:
        """Search and return each hit with highlighted title and snippet.

        Args:
            query: User query.
            column: Optionally restrict matching to ``"title"`` or ``"content"``.
            limit: Maximum results (default ``config.search_limit``, at most 50).
        """
        hits = self._run(
            "search_with_highlight", query, column=column, highlight=True, limit=limit
        )
        notes = {note.id: note for note in self._hydrate(hits)}

        results = []
        for hit in hits:
            note = notes.get(hit["id"])
            if note is None:
                # Deleted between query and hydration
                continue
            results.append(
                HighlightedResult(
                    note=note,
                    highlighted_title=hit.get("title_highlight") or note.title,
                    highlighted_snippet=hit.get("snippet") or "",
                    score=hit["score"],
                )
            )
        return results

    def rebuild_index(self) -> int:
        """Rebuild the search index from the live notes.

        Returns:
            Number of notes indexed.
        """
        with timed_operation("rebuild_index") as op:
            count = self.index.rebuild()
            op["indexed"] = count
        return count
