"""
NoteGraph - short text notes with an automatically maintained link graph.

Notes reference each other with inline ``[[Title]]`` wiki-links. Every time a
note is written its outgoing links are re-derived from the text and the stored
graph is diffed to match. Notes are also indexed for ranked full-text search.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notegraph")
except PackageNotFoundError:
    __version__ = "0.3.0"
