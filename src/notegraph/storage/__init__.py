"""Storage layer for NoteGraph."""

from notegraph.storage.base import Repository, transaction
from notegraph.storage.fts_index import FtsIndex
from notegraph.storage.link_repository import LinkRepository
from notegraph.storage.note_repository import NoteRepository

__all__ = [
    "Repository",
    "transaction",
    "FtsIndex",
    "NoteRepository",
    "LinkRepository",
]
