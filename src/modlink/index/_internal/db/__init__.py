"""Database layer for the index."""

from modlink.index._internal.db.database import Database
from modlink.index._internal.db.indexes import create_additional_indexes, drop_additional_indexes

__all__ = [
    "Database",
    "create_additional_indexes",
    "drop_additional_indexes",
]
