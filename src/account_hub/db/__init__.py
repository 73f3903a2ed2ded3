"""SQLite persistence layer: schema, connection scopes and repositories."""
