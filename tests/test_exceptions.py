# tests/test_exceptions.py
"""Tests for the exception hierarchy."""
import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from notegraph.exceptions import (
    ErrorCode,
    LinkError,
    NotegraphError,
    NoteNotFoundError,
    NoteValidationError,
    SearchError,
    StorageError,
)


class TestExceptionHierarchy:
    """Tests for error codes and serialization."""

    @pytest.mark.parametrize(
        "error",
        [
            NoteNotFoundError(1),
            NoteValidationError("bad"),
            LinkError("bad link"),
            StorageError("down"),
            SearchError("bad query"),
        ],
    )
    def test_all_inherit_from_base(self, error):
        assert isinstance(error, NotegraphError)

    def test_note_not_found(self):
        error = NoteNotFoundError(42)
        assert error.note_id == 42
        assert error.code == ErrorCode.NOTE_NOT_FOUND
        assert str(error) == "[NOTE_NOT_FOUND] Note with ID 42 not found (note_id=42)"

    def test_to_dict(self):
        error = LinkError(
            "A note cannot link to itself",
            source_id=1,
            target_id=1,
            code=ErrorCode.LINK_SELF_REFERENCE,
        )
        assert error.to_dict() == {
            "error": "LinkError",
            "code": 2004,
            "code_name": "LINK_SELF_REFERENCE",
            "message": "A note cannot link to itself",
            "details": {"source_id": 1, "target_id": 1},
        }

    def test_validation_value_is_truncated(self):
        error = NoteValidationError("too long", field="title", value="x" * 500)
        assert len(error.details["value"]) == 100

    def test_storage_error_keeps_original(self):
        cause = RuntimeError("disk I/O error")
        error = StorageError("write failed", operation="create_note", original_error=cause)
        assert error.original_error is cause
        assert error.details == {
            "operation": "create_note",
            "original_error": "disk I/O error",
        }


class TestStorageFailures:
    """Persistence failures surface as StorageError and leave no partial state."""

    def test_database_error_becomes_storage_error(self, engine, note_service):
        @event.listens_for(engine, "before_cursor_execute")
        def _fail(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith("INSERT INTO NOTES"):
                raise OperationalError(statement, parameters, Exception("database is locked"))

        try:
            with pytest.raises(StorageError) as exc_info:
                note_service.create_note("Locked")
        finally:
            event.remove(engine, "before_cursor_execute", _fail)

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert note_service.get_notes_count() == 0
