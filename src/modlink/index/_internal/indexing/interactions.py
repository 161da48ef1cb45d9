"""Interaction persistence.

Rows are unique per ordered ``(from_module_id, to_module_id)``. Inserting an
existing pair is not an error: ``insert`` reports ``ALREADY_EXISTS`` and
leaves the stored row untouched.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import aliased
from sqlmodel import col, select

from modlink.index.models import (
    Confidence,
    Direction,
    Interaction,
    InteractionPattern,
    InteractionSource,
    Module,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlmodel import Session


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


@dataclass
class InteractionWithPaths:
    """Interaction row joined with both module paths."""

    id: int
    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    direction: str
    weight: int
    pattern: str | None
    source: str
    semantic: str | None = None
    confidence: str | None = None
    symbols: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, int]:
        return (self.from_module_id, self.to_module_id)


class InteractionRepository:
    """CRUD over the interactions table for one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    def insert(
        self,
        from_module_id: int,
        to_module_id: int,
        *,
        source: InteractionSource,
        weight: int = 1,
        pattern: InteractionPattern | None = None,
        symbols: Iterable[str] | None = None,
        semantic: str | None = None,
        confidence: Confidence | None = None,
        direction: Direction = Direction.UNI,
    ) -> InsertOutcome:
        """Insert one interaction unless the ordered pair already exists."""
        if from_module_id == to_module_id:
            raise ValueError(f"Self-loop interaction on module {from_module_id}")
        if weight < 0:
            raise ValueError(f"Interaction weight must be >= 0, got {weight}")

        symbol_list = list(symbols) if symbols is not None else []
        stmt = (
            sqlite_insert(Interaction)
            .values(
                from_module_id=from_module_id,
                to_module_id=to_module_id,
                direction=direction.value,
                weight=weight,
                pattern=pattern.value if pattern else None,
                symbols=json.dumps(symbol_list) if symbol_list else None,
                semantic=semantic,
                source=source.value,
                confidence=confidence.value if confidence else None,
                created_at=time.time(),
            )
            .on_conflict_do_nothing(index_elements=["from_module_id", "to_module_id"])
        )
        result = self._session.execute(stmt)
        return InsertOutcome.INSERTED if result.rowcount == 1 else InsertOutcome.ALREADY_EXISTS

    def update(
        self,
        interaction_id: int,
        *,
        semantic: str | None = None,
        pattern: InteractionPattern | None = None,
        direction: Direction | None = None,
        symbols: Iterable[str] | None = None,
    ) -> bool:
        """Overwrite the given fields of one row. Fields left as None are kept."""
        values: dict[str, object] = {}
        if semantic is not None:
            values["semantic"] = semantic
        if pattern is not None:
            values["pattern"] = pattern.value
        if direction is not None:
            values["direction"] = direction.value
        if symbols is not None:
            symbol_list = list(symbols)
            values["symbols"] = json.dumps(symbol_list) if symbol_list else None
        if not values:
            return False
        result = self._session.execute(
            update(Interaction).where(col(Interaction.id) == interaction_id).values(**values)
        )
        return bool(result.rowcount)

    def delete(self, interaction_id: int) -> bool:
        result = self._session.execute(
            delete(Interaction).where(col(Interaction.id) == interaction_id)
        )
        return bool(result.rowcount)

    def delete_many(self, interaction_ids: Iterable[int]) -> int:
        ids = list(interaction_ids)
        if not ids:
            return 0
        result = self._session.execute(delete(Interaction).where(col(Interaction.id).in_(ids)))
        return int(result.rowcount)

    def clear(self) -> int:
        result = self._session.execute(delete(Interaction))
        return int(result.rowcount)

    def remove_inferred_to_module(self, module_id: int) -> int:
        """Delete every llm-inferred interaction pointing at ``module_id``."""
        result = self._session.execute(
            delete(Interaction).where(
                col(Interaction.to_module_id) == module_id,
                col(Interaction.source) == InteractionSource.LLM_INFERRED.value,
            )
        )
        return int(result.rowcount)

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_by_id(self, interaction_id: int) -> InteractionWithPaths | None:
        rows = self._select_with_paths(col(Interaction.id) == interaction_id)
        return rows[0] if rows else None

    def get_by_modules(self, from_module_id: int, to_module_id: int) -> Interaction | None:
        stmt = select(Interaction).where(
            Interaction.from_module_id == from_module_id,
            Interaction.to_module_id == to_module_id,
        )
        return self._session.exec(stmt).first()

    def get_all(self) -> list[InteractionWithPaths]:
        return self._select_with_paths()

    def get_by_source(self, source: InteractionSource) -> list[InteractionWithPaths]:
        return self._select_with_paths(col(Interaction.source) == source.value)

    def get_by_pattern(self, pattern: InteractionPattern) -> list[InteractionWithPaths]:
        return self._select_with_paths(col(Interaction.pattern) == pattern.value)

    def count(self, source: InteractionSource | None = None) -> int:
        stmt = select(func.count()).select_from(Interaction)
        if source is not None:
            stmt = stmt.where(col(Interaction.source) == source.value)
        return int(self._session.exec(stmt).one())

    def _select_with_paths(self, *conditions: object) -> list[InteractionWithPaths]:
        from_m = aliased(Module)
        to_m = aliased(Module)
        stmt = (
            select(Interaction, from_m.full_path, to_m.full_path)
            .join(from_m, from_m.id == col(Interaction.from_module_id))
            .join(to_m, to_m.id == col(Interaction.to_module_id))
            .order_by(col(Interaction.weight).desc(), col(Interaction.id))
        )
        for condition in conditions:
            stmt = stmt.where(condition)  # type: ignore[arg-type]

        return [
            InteractionWithPaths(
                id=row.id,  # type: ignore[arg-type]
                from_module_id=row.from_module_id,
                to_module_id=row.to_module_id,
                from_module_path=from_path,
                to_module_path=to_path,
                direction=row.direction,
                weight=row.weight,
                pattern=row.pattern,
                source=row.source,
                semantic=row.semantic,
                confidence=row.confidence,
                symbols=row.get_symbols(),
            )
            for row, from_path, to_path in self._session.exec(stmt)
        ]
