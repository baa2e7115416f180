"""Document persistence (SQLite per-user documents, JSON export/import)."""
