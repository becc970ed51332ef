"""SQLAlchemy Core table definitions for the header index.

The index is derived data: one row per document with its last parsed header
and the commit revision it reflects. It is rebuilt every session.
"""

from __future__ import annotations

from sqlalchemy import REAL, Column, Index, Integer, MetaData, Table, Text

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("path", Text, primary_key=True),  # vault-relative, POSIX separators
    Column("revision", Integer, nullable=False),
    Column("entity_type", Text),
    Column("header", Text),  # JSON object; NULL when missing or unparseable
    Column("parse_error", Text),
    Column("mtime", REAL),
    Column("indexed_at", Text, nullable=False),
)

Index("ix_documents_entity_type", documents.c.entity_type)
