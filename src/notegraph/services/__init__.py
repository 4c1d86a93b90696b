"""Service layer: link extraction, link graph synchronization and search."""
