"""Additional index creation for query performance.

These indexes complement the basic indexes defined in SQLModel Field()
declarations. They are composite indexes for the call-graph and coverage
queries that cannot be expressed via Field(index=True).

Call create_additional_indexes() after Database.create_all().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine


ADDITIONAL_INDEXES = {
    # Caller lookup: definitions enclosing a usage line
    "idx_definitions_file_lines": "definitions(file_id, line, end_line)",
    # Call detection joins usages on symbol then filters by context
    "idx_usages_symbol_context": "usages(symbol_id, context)",
    # Import graph aggregation per file pair
    "idx_imports_from_to": "imports(from_file_id, to_file_id)",
    # Resolved symbols per import
    "idx_symbols_reference_definition": "symbols(reference_id, definition_id)",
    # Fan-in and reverse lookups
    "idx_interactions_to_source": "interactions(to_module_id, source)",
    # Purpose lookup for prompt members
    "idx_definition_metadata_key": "definition_metadata(key, definition_id)",
}


def create_additional_indexes(engine: Engine) -> None:
    """
    Create additional composite indexes.

    Call this after Database.create_all() to add performance indexes
    that cannot be expressed via SQLModel Field() declarations.
    """
    with engine.connect() as conn:
        for name, target in ADDITIONAL_INDEXES.items():
            conn.execute(text(f"CREATE INDEX IF NOT EXISTS {name} ON {target}"))
        conn.commit()


def drop_additional_indexes(engine: Engine) -> None:
    """Drop additional indexes (for testing/reset)."""
    with engine.connect() as conn:
        for name in ADDITIONAL_INDEXES:
            conn.execute(text(f"DROP INDEX IF EXISTS {name}"))
        conn.commit()
