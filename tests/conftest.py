"""Common test fixtures for NoteGraph."""

import tempfile
from pathlib import Path

import pytest

from notegraph.app import NoteGraph
from notegraph.config import config
from notegraph.observability import metrics


@pytest.fixture
def temp_db_dir():
    """Create a temporary directory for the database."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_db_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "database_path", temp_db_dir / "test_notegraph.db")
    monkeypatch.setattr(config, "in_memory_db", False)
    monkeypatch.setattr(config, "log_dir", None)
    yield config


@pytest.fixture
def graph(test_config):
    """A fully wired NoteGraph on a fresh database file."""
    app = NoteGraph()
    yield app
    app.close()


@pytest.fixture
def engine(graph):
    return graph.engine


@pytest.fixture
def session_factory(graph):
    return graph.session_factory


@pytest.fixture
def note_repository(graph):
    return graph.note_repository


@pytest.fixture
def link_repository(graph):
    return graph.link_repository


@pytest.fixture
def fts_index(graph):
    return graph.fts_index


@pytest.fixture
def synchronizer(graph):
    return graph.synchronizer


@pytest.fixture
def note_service(graph):
    return graph.notes


@pytest.fixture
def search_service(graph):
    return graph.search


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Start every test with an empty metrics collector."""
    metrics.reset()
    yield
    metrics.reset()
