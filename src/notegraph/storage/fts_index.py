"""FTS5 full-text search index over note titles and content.

Owns querying, ranking, graceful degradation to a LIKE scan, and recovery of
a corrupt index. The index itself is kept current by triggers on the notes
table (see ``notegraph.models.db_models.init_fts5``).
"""
import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DatabaseError as SQLAlchemyDatabaseError
from sqlalchemy.exc import OperationalError as SQLAlchemyOperationalError

from notegraph.config import config
from notegraph.exceptions import ErrorCode, SearchError
from notegraph.models.db_models import init_fts5, rebuild_fts_index
from notegraph.utils import escape_like_pattern, excerpt

logger = logging.getLogger(__name__)

# Indexed columns, in FTS5 column order
FTS_COLUMNS = ("title", "content")

# Fallback scores, lower is better like bm25()
_FALLBACK_TITLE_SCORE = -2.0
_FALLBACK_CONTENT_SCORE = -1.0


class FtsIndex:
    """Ranked FTS5 search with a LIKE fallback.

    Results are plain dicts with ``id`` and ``score`` (bm25, lower is better)
    and, when ``highlight`` is requested, ``title_highlight`` and ``snippet``.
    Every result refers to a note that was live when the query ran.

    Args:
        engine: SQLAlchemy engine used for database access.
        session_factory: Callable returning a context-manager session.
    """

    def __init__(self, engine: Engine, session_factory: Callable) -> None:
        self.engine = engine
        self._session_factory = session_factory
        self.available: bool = self._table_exists()
        if not self.available:
            logger.warning("FTS5 index not present, search will use LIKE fallback")

    def _table_exists(self) -> bool:
        with self._session_factory() as session:
            name = session.execute(
                text(
                    "SELECT name FROM sqlite_master "
                    "WHERE type = 'table' AND name = 'notes_fts'"
                )
            ).scalar()
        return name is not None

    # ------------------------------------------------------------------
    # Public query API
    # ------------------------------------------------------------------

    @staticmethod
    def prepare_query(query: str) -> str:
        """Normalize a user query for FTS5 MATCH.

        The query is trimmed. A single bare word (no whitespace, no double
        quotes) becomes a quoted prefix query, so ``not`` matches
        ``notebook``. Anything else is passed through unchanged.

        Examples:
            >>> FtsIndex.prepare_query("  apple ")
            '"apple"*'
            >>> FtsIndex.prepare_query("apple pie")
            'apple pie'
        """
        query = query.strip()
        if query and '"' not in query and len(query.split()) == 1:
            return f'"{query}"*'
        return query

    def search(
        self,
        query: str,
        column: Optional[str] = None,
        limit: int = 50,
        highlight: bool = False,
    ) -> List[Dict[str, Any]]:
        """Run a ranked full-text query.

        Args:
            query: Raw user query. Blank queries return no results.
            column: Restrict matching to ``"title"`` or ``"content"``.
            limit: Maximum number of results.
            highlight: Include ``title_highlight`` and ``snippet``.

        Returns:
            Result dicts, best match first, ties in note id order.

        Raises:
            SearchError: If ``column`` is unknown or the fallback scan fails.
        """
        if column is not None and column not in FTS_COLUMNS:
            raise SearchError(
                f"Unknown search column: {column}",
                query=query,
                code=ErrorCode.SEARCH_INVALID_QUERY,
            )
        if not query or not query.strip():
            return []

        if not self.available:
            logger.debug("FTS5 unavailable, using fallback search")
            return self._fallback_text_search(query, column, limit, highlight)

        return self._fts_search(query, column, limit, highlight, retried=False)

    def rebuild(self) -> int:
        """Rebuild the FTS5 index from the live notes and re-enable it.

        Recreates the index table and its triggers first if they are missing.

        Returns:
            Number of notes indexed.

        Raises:
            SearchError: If this SQLite build has no FTS5 support.
        """
        if not self._table_exists() and not init_fts5(self.engine):
            raise SearchError(
                "FTS5 is not available in this SQLite build",
                code=ErrorCode.SEARCH_FAILED,
            )
        count = rebuild_fts_index(self.engine)
        self.available = True
        logger.info(f"FTS5 index rebuilt with {count} notes")
        return count

    # ------------------------------------------------------------------
    # FTS5 execution
    # ------------------------------------------------------------------

    def _fts_search(
        self,
        query: str,
        column: Optional[str],
        limit: int,
        highlight: bool,
        retried: bool,
    ) -> List[Dict[str, Any]]:
        match = self.prepare_query(query)
        if column is not None:
            match = f"{column} : ({match})"

        extra = ""
        if highlight:
            extra = """,
                    highlight(notes_fts, 0, :hl_open, :hl_close) AS title_highlight,
                    snippet(notes_fts, 1, :hl_open, :hl_close, '...', :tokens) AS snippet"""

        # "score" rather than "rank": rank is a hidden FTS5 column
        sql = text(f"""
            SELECT n.id, bm25(notes_fts) AS score{extra}
            FROM notes_fts
            JOIN notes n ON n.id = notes_fts.rowid AND n.is_deleted = 0
            WHERE notes_fts MATCH :query
            ORDER BY score, n.id
            LIMIT :limit
        """)
        params: Dict[str, Any] = {"query": match, "limit": limit}
        if highlight:
            params.update(
                hl_open=config.highlight_open,
                hl_close=config.highlight_close,
                tokens=config.snippet_tokens,
            )

        results: List[Dict[str, Any]] = []
        with self._session_factory() as session:
            try:
                for row in session.execute(sql, params).mappings():
                    entry: Dict[str, Any] = {"id": row["id"], "score": row["score"]}
                    if highlight:
                        entry["title_highlight"] = row["title_highlight"]
                        entry["snippet"] = row["snippet"]
                    results.append(entry)

            except (sqlite3.OperationalError, SQLAlchemyOperationalError) as e:
                logger.warning(
                    f"FTS5 query failed for '{query}': {e}. Using fallback search."
                )
                return self._fallback_text_search(query, column, limit, highlight)

            except (sqlite3.DatabaseError, SQLAlchemyDatabaseError) as e:
                error_msg = str(e).lower()
                if "malformed" not in error_msg and "corrupt" not in error_msg:
                    logger.error(f"FTS5 database error: {e}. Using fallback search.")
                    return self._fallback_text_search(query, column, limit, highlight)

                logger.error(f"FTS5 corruption detected: {e}. Attempting auto-rebuild...")
                if not retried and self._attempt_recovery():
                    logger.info("FTS5 rebuilt successfully, retrying search")
                    return self._fts_search(query, column, limit, highlight, retried=True)

                logger.error("FTS5 recovery failed. Disabling FTS5 for this session.")
                self.available = False
                return self._fallback_text_search(query, column, limit, highlight)

        logger.debug(f"FTS5 search returned {len(results)} results for '{query}'")
        return results

    # ------------------------------------------------------------------
    # Fallback & recovery
    # ------------------------------------------------------------------

    def _fallback_text_search(
        self,
        query: str,
        column: Optional[str] = None,
        limit: int = 50,
        highlight: bool = False,
    ) -> List[Dict[str, Any]]:
        """LIKE-based scan used when FTS5 is missing or rejects the query.

        The whole trimmed query is matched as a substring. When titles are
        searched, title matches score ahead of content-only matches; ties go
        to the lower note id.
        """
        needle = query.strip()
        term = f"%{escape_like_pattern(needle)}%"
        columns = (column,) if column else FTS_COLUMNS
        rank_by_title = "title" in columns
        condition = " OR ".join(f"{c} LIKE :term ESCAPE '\\'" for c in columns)
        order = (
            "CASE WHEN title LIKE :term ESCAPE '\\' THEN 0 ELSE 1 END, id"
            if rank_by_title
            else "id"
        )
        sql = text(f"""
            SELECT id, title, content
            FROM notes
            WHERE is_deleted = 0 AND ({condition})
            ORDER BY {order}
            LIMIT :limit
        """)

        results: List[Dict[str, Any]] = []
        try:
            with self._session_factory() as session:
                rows = session.execute(sql, {"term": term, "limit": limit}).fetchall()
        except SQLAlchemyDatabaseError as e:
            raise SearchError(
                f"Fallback text search failed: {e}",
                query=query,
                code=ErrorCode.SEARCH_FAILED,
            ) from e

        lowered = needle.lower()
        for note_id, title, content in rows:
            title_match = rank_by_title and lowered in (title or "").lower()
            entry: Dict[str, Any] = {
                "id": note_id,
                "score": _FALLBACK_TITLE_SCORE if title_match else _FALLBACK_CONTENT_SCORE,
            }
            if highlight:
                entry["title_highlight"] = title
                entry["snippet"] = excerpt(content or "", config.snippet_tokens)
            results.append(entry)

        logger.debug(
            f"Fallback search returned {len(results)} results for query '{query}'"
        )
        return results

    def _attempt_recovery(self) -> bool:
        """Try to recover FTS5 by rebuilding the index."""
        try:
            self.rebuild()
            return True
        except SQLAlchemyDatabaseError as e:
            logger.error(f"FTS5 rebuild failed: {e}")
            return False
