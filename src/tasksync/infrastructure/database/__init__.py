"""SQLite header index (SQLAlchemy Core)."""
