# tests/test_link_repository.py
"""Tests for the link store."""
import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from notegraph.exceptions import ErrorCode, LinkError, NoteNotFoundError


@pytest.fixture
def notes(note_repository):
    """Three live notes titled Alpha, Beta and Gamma."""
    return {
        title: note_repository.create(title, f"{title} body")
        for title in ("Alpha", "Beta", "Gamma")
    }


class TestCreateLink:
    """Tests for LinkRepository.create."""

    def test_create_and_get(self, link_repository, notes):
        link = link_repository.create(notes["Alpha"].id, notes["Beta"].id)
        assert link.id is not None
        assert link.source_id == notes["Alpha"].id
        assert link.target_id == notes["Beta"].id
        assert link_repository.get_by_id(link.id) == link
        assert link_repository.get(notes["Alpha"].id, notes["Beta"].id) == link
        assert link_repository.get(notes["Beta"].id, notes["Alpha"].id) is None

    def test_self_loop_rejected(self, link_repository, notes):
        with pytest.raises(LinkError) as exc_info:
            link_repository.create(notes["Alpha"].id, notes["Alpha"].id)
        assert exc_info.value.code == ErrorCode.LINK_SELF_REFERENCE

    def test_duplicate_rejected(self, link_repository, notes):
        link_repository.create(notes["Alpha"].id, notes["Beta"].id)
        with pytest.raises(LinkError) as exc_info:
            link_repository.create(notes["Alpha"].id, notes["Beta"].id)
        assert exc_info.value.code == ErrorCode.LINK_ALREADY_EXISTS
        assert link_repository.count_outgoing(notes["Alpha"].id) == 1

    def test_reverse_direction_is_a_different_edge(self, link_repository, notes):
        link_repository.create(notes["Alpha"].id, notes["Beta"].id)
        link_repository.create(notes["Beta"].id, notes["Alpha"].id)
        assert link_repository.exists(notes["Beta"].id, notes["Alpha"].id)

    def test_missing_endpoint_rejected(self, link_repository, notes):
        with pytest.raises(NoteNotFoundError):
            link_repository.create(notes["Alpha"].id, 12345)
        with pytest.raises(NoteNotFoundError):
            link_repository.create(12345, notes["Alpha"].id)

    def test_deleted_endpoint_rejected(self, link_repository, note_repository, notes):
        note_repository.soft_delete(notes["Beta"].id)
        with pytest.raises(NoteNotFoundError):
            link_repository.create(notes["Alpha"].id, notes["Beta"].id)

    def test_schema_enforces_uniqueness(self, engine, link_repository, notes):
        link_repository.create(notes["Alpha"].id, notes["Beta"].id)
        with pytest.raises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO links (source_note_id, target_note_id, created_at) "
                        "VALUES (:s, :t, CURRENT_TIMESTAMP)"
                    ),
                    {"s": notes["Alpha"].id, "t": notes["Beta"].id},
                )

    def test_schema_rejects_self_loop(self, engine, notes):
        with pytest.raises(IntegrityError):
            with engine.begin() as conn:
                conn.execute(
                    text(
                        "INSERT INTO links (source_note_id, target_note_id, created_at) "
                        "VALUES (:s, :s, CURRENT_TIMESTAMP)"
                    ),
                    {"s": notes["Alpha"].id},
                )


class TestLinkQueries:
    """Tests for listing, counting and deleting links."""

    def test_outgoing_and_incoming(self, link_repository, notes):
        a, b, c = notes["Alpha"], notes["Beta"], notes["Gamma"]
        link_repository.create(a.id, b.id)
        link_repository.create(a.id, c.id)
        link_repository.create(c.id, b.id)

        assert {link.target_id for link in link_repository.get_outgoing(a.id)} == {b.id, c.id}
        assert {link.source_id for link in link_repository.get_incoming(b.id)} == {a.id, c.id}
        assert link_repository.count_outgoing(a.id) == 2
        assert link_repository.count_incoming(b.id) == 2
        assert link_repository.count_incoming(a.id) == 0
        assert link_repository.outgoing_target_ids(a.id) == {b.id, c.id}

    def test_linked_notes_are_ordered_by_title(self, link_repository, notes):
        a, b, c = notes["Alpha"], notes["Beta"], notes["Gamma"]
        link_repository.create(c.id, b.id)
        link_repository.create(c.id, a.id)
        link_repository.create(a.id, b.id)

        assert [n.title for n in link_repository.find_outgoing_notes(c.id)] == ["Alpha", "Beta"]
        assert [n.title for n in link_repository.find_incoming_notes(b.id)] == ["Alpha", "Gamma"]

    def test_linked_notes_skip_deleted(self, link_repository, note_repository, notes):
        a, b = notes["Alpha"], notes["Beta"]
        link_repository.create(a.id, b.id)
        # Tombstone without the service-level edge purge
        note_repository.soft_delete(b.id)
        assert link_repository.find_outgoing_notes(a.id) == []

    def test_delete_by_pair_and_id(self, link_repository, notes):
        a, b, c = notes["Alpha"], notes["Beta"], notes["Gamma"]
        link_repository.create(a.id, b.id)
        second = link_repository.create(a.id, c.id)

        assert link_repository.delete(a.id, b.id) is True
        assert link_repository.delete(a.id, b.id) is False
        assert link_repository.delete_by_id(second.id) is True
        assert link_repository.delete_by_id(second.id) is False
        assert link_repository.count_outgoing(a.id) == 0

    def test_delete_all_for_note(self, link_repository, notes):
        a, b, c = notes["Alpha"], notes["Beta"], notes["Gamma"]
        link_repository.create(a.id, b.id)
        link_repository.create(b.id, c.id)
        link_repository.create(c.id, a.id)

        assert link_repository.delete_all_for_note(b.id) == 2
        assert link_repository.get_outgoing(b.id) == []
        assert link_repository.get_incoming(b.id) == []
        assert link_repository.exists(c.id, a.id)
