# tests/test_search_service.py
"""Tests for ranked full-text search."""
import pytest
from sqlalchemy import text

from notegraph.config import config
from notegraph.services.search_service import HighlightedResult


@pytest.fixture
def apples(note_service):
    """Two apple notes and one unrelated note."""
    pie = note_service.create_note("Apple pie", "Bake the apple pie for an hour.")
    tree = note_service.create_note("Apple tree", "An apple tree grows in the garden.")
    other = note_service.create_note("Bread", "Flour, water and salt.")
    return pie, tree, other


class TestSearch:
    """Tests for SearchService.search."""

    def test_fts_is_active(self, search_service):
        assert search_service.has_fts is True

    def test_ranked_results(self, search_service, apples):
        pie, tree, _ = apples
        results = search_service.search("apple")
        assert {n.id for n in results} == {pie.id, tree.id}

        scores = [
            hit.score for hit in search_service.search_with_highlight("apple")
        ]
        assert scores == sorted(scores)

    def test_better_match_ranks_first(self, note_service, search_service):
        weak = note_service.create_note("Gardening", "A long note that mentions kiwi once " + "filler " * 40)
        strong = note_service.create_note("Kiwi", "kiwi kiwi kiwi")
        results = search_service.search("kiwi")
        assert [n.id for n in results] == [strong.id, weak.id]

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_blank_query_returns_nothing(self, search_service, apples, query):
        assert search_service.search(query) == []
        assert search_service.search_with_highlight(query) == []

    def test_single_word_is_prefix(self, note_service, search_service):
        note = note_service.create_note("Stationery", "I bought a new notebook.")
        assert [n.id for n in search_service.search("not")] == [note.id]

    def test_two_words_are_not_prefixed(self, note_service, search_service):
        note_service.create_note("Stationery", "I bought a new notebook.")
        assert search_service.search("new not") == []
        assert len(search_service.search("new notebook")) == 1

    def test_quoted_phrase(self, note_service, search_service):
        hit = note_service.create_note("Phrase", "the quick brown fox")
        note_service.create_note("Shuffled", "brown quick the fox")
        assert [n.id for n in search_service.search('"quick brown"')] == [hit.id]

    def test_deleted_note_never_returned(self, note_service, search_service, apples):
        pie, tree, _ = apples
        note_service.delete_note(pie.id)
        assert [n.id for n in search_service.search("apple")] == [tree.id]

    def test_stale_index_row_is_filtered(
        self, engine, note_service, search_service, apples
    ):
        pie, tree, _ = apples
        note_service.delete_note(pie.id)
        # Put the deleted note back into the index behind the triggers' back
        with engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO notes_fts(rowid, title, content) "
                    "VALUES (:id, 'Apple pie', 'apple')"
                ),
                {"id": pie.id},
            )
        assert [n.id for n in search_service.search("apple")] == [tree.id]

    def test_updated_content_is_reindexed(self, note_service, search_service):
        note = note_service.create_note("Drink", "coffee")
        note_service.update_note_content(note.id, "tea")
        assert search_service.search("coffee") == []
        assert [n.id for n in search_service.search("tea")] == [note.id]

    def test_result_limit(self, note_service, search_service, monkeypatch):
        for i in range(5):
            note_service.create_note(f"Note {i}", "shared word")
        monkeypatch.setattr(config, "search_limit", 3)
        assert len(search_service.search("shared")) == 3
        assert len(search_service.search("shared", limit=2)) == 2

    def test_results_capped_at_fifty(self, note_service, search_service):
        for i in range(60):
            note_service.create_note(f"Note {i}", "shared word")
        assert len(search_service.search("shared", limit=100)) == 50
        assert len(search_service.search_with_highlight("shared", limit=100)) == 50

    def test_invalid_fts_syntax_falls_back(self, note_service, search_service):
        note = note_service.create_note("Syntax", 'contains "unbalanced quote')
        results = search_service.search('"unbalanced quote')
        assert [n.id for n in results] == [note.id]


class TestFieldSearch:
    """Tests for search_by_title and search_by_content."""

    def test_search_by_title(self, note_service, search_service):
        in_title = note_service.create_note("Orchard", "fruit")
        note_service.create_note("Fruit", "the orchard is big")
        assert [n.id for n in search_service.search_by_title("orchard")] == [in_title.id]

    def test_search_by_content(self, note_service, search_service):
        note_service.create_note("Orchard", "fruit")
        in_content = note_service.create_note("Fruit", "the orchard is big")
        assert [n.id for n in search_service.search_by_content("orchard")] == [in_content.id]


class TestHighlight:
    """Tests for search_with_highlight."""

    def test_markers_and_snippet(self, search_service, apples):
        pie, _, _ = apples
        results = search_service.search_with_highlight("pie")
        assert len(results) == 1
        hit = results[0]
        assert isinstance(hit, HighlightedResult)
        assert hit.note.id == pie.id
        assert hit.highlighted_title == "Apple <mark>pie</mark>"
        assert "<mark>pie</mark>" in hit.highlighted_snippet
        assert isinstance(hit.score, float)

    def test_snippet_is_bounded(self, note_service, search_service, monkeypatch):
        monkeypatch.setattr(config, "snippet_tokens", 5)
        note_service.create_note("Long", "word " * 50 + "needle " + "word " * 50)
        hit = search_service.search_with_highlight("needle")[0]
        assert "<mark>needle</mark>" in hit.highlighted_snippet
        assert len(hit.highlighted_snippet.split()) <= 7

    def test_custom_markers(self, search_service, apples, monkeypatch):
        monkeypatch.setattr(config, "highlight_open", "[")
        monkeypatch.setattr(config, "highlight_close", "]")
        hit = search_service.search_with_highlight("tree")[0]
        assert hit.highlighted_title == "Apple [tree]"


class TestRebuildIndex:
    """Tests for SearchService.rebuild_index."""

    def test_rebuild_restores_missing_rows(self, engine, search_service, apples):
        with engine.begin() as conn:
            conn.execute(text("DELETE FROM notes_fts"))
        assert search_service.search("apple") == []

        assert search_service.rebuild_index() == 3
        assert len(search_service.search("apple")) == 2

    def test_rebuild_skips_deleted(self, note_service, search_service, apples):
        pie, _, _ = apples
        note_service.delete_note(pie.id)
        assert search_service.rebuild_index() == 2
