"""Domain models and database tables for NoteGraph."""
