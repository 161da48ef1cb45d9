"""IndexStore - the evidence and persistence facade used by the interaction engine.

Every method opens its own short session, so each write is atomic on its
own and no transaction spans an inference pass. The import graph snapshot
is cached for the lifetime of the store: imports do not change while
interactions are generated.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from modlink.core.errors import StoreError
from modlink.index._internal.db import Database, create_additional_indexes
from modlink.index._internal.indexing import (
    CallGraphQueries,
    CoverageBreakdown,
    EnrichedCallEdge,
    FanInAnomaly,
    FileLevelImportPair,
    ImportGraph,
    ImportModulePair,
    InheritancePair,
    InsertOutcome,
    InteractionRepository,
    InteractionWithPaths,
    ModuleCallEdge,
    ModuleQueries,
    ModuleWithMembers,
    RelationshipAnalysis,
    RelationshipCoverage,
    RelationshipDetail,
    UncoveredPair,
)
from modlink.index.models import (
    Confidence,
    Definition,
    Direction,
    Interaction,
    InteractionPattern,
    InteractionSource,
    Module,
)

if TYPE_CHECKING:
    from modlink.config.models import DatabaseConfig

logger = structlog.get_logger()


class IndexStore:
    """Read/write access to the index for one run."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._import_graph: ImportGraph | None = None

    @classmethod
    def open(
        cls,
        db_path: Path,
        config: DatabaseConfig | None = None,
        *,
        create: bool = False,
    ) -> IndexStore:
        """Open an index database. Missing files are an error unless ``create``."""
        if not create and not db_path.exists():
            raise StoreError.not_found(str(db_path))
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = Database.from_config(db_path, config) if config else Database(db_path)
        db.create_all()
        create_additional_indexes(db.engine)
        return cls(db)

    @property
    def db(self) -> Database:
        return self._db

    # -----------------------------------------------------------------
    # Modules
    # -----------------------------------------------------------------

    def get_all_modules(self) -> list[Module]:
        with self._db.session() as session:
            return ModuleQueries(session).get_all_modules()

    def get_module_by_path(self, full_path: str) -> Module | None:
        with self._db.session() as session:
            return ModuleQueries(session).get_module_by_path(full_path)

    def get_all_modules_with_members(self) -> list[ModuleWithMembers]:
        with self._db.session() as session:
            return ModuleQueries(session).get_all_modules_with_members()

    def get_module_with_members(self, module_id: int) -> ModuleWithMembers | None:
        with self._db.session() as session:
            return ModuleQueries(session).get_module_with_members(module_id)

    def get_module_definitions(self, module_id: int) -> list[Definition]:
        with self._db.session() as session:
            return ModuleQueries(session).get_module_definitions(module_id)

    def get_test_module_ids(self) -> set[int]:
        with self._db.session() as session:
            return ModuleQueries(session).get_test_module_ids()

    def get_definition_metadata_values(
        self, definition_ids: Iterable[int], key: str
    ) -> dict[int, str]:
        with self._db.session() as session:
            return ModuleQueries(session).get_definition_metadata_values(definition_ids, key)

    # -----------------------------------------------------------------
    # Call graph
    # -----------------------------------------------------------------

    def get_enriched_module_call_graph(self) -> list[EnrichedCallEdge]:
        with self._db.session() as session:
            return CallGraphQueries(session).get_enriched_module_call_graph()

    def get_module_call_graph(self) -> list[ModuleCallEdge]:
        with self._db.session() as session:
            return CallGraphQueries(session).get_module_call_graph()

    # -----------------------------------------------------------------
    # Import graph
    # -----------------------------------------------------------------

    def _imports(self) -> ImportGraph:
        if self._import_graph is None:
            with self._db.session() as session:
                self._import_graph = ImportGraph(session).load()
        return self._import_graph

    def has_module_import_path(self, from_module_id: int, to_module_id: int) -> bool:
        return self._imports().has_path(from_module_id, to_module_id)

    def get_module_imported_symbols(self, from_module_id: int, to_module_id: int) -> list[str]:
        return self._imports().imported_symbols(from_module_id, to_module_id)

    def get_module_import_edges(self) -> list[tuple[int, int]]:
        """Module pairs joined by runtime (non type-only) imports."""
        return self._imports().runtime_edges()

    def get_import_only_module_pairs(self) -> list[ImportModulePair]:
        call_pairs = {(e.from_module_id, e.to_module_id) for e in self.get_module_call_graph()}
        return self._imports().import_only_pairs(call_pairs)

    def get_file_level_import_module_pairs(self) -> list[FileLevelImportPair]:
        return self._imports().file_level_pairs()

    # -----------------------------------------------------------------
    # Interactions
    # -----------------------------------------------------------------

    def insert_interaction(
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
        with self._db.immediate_transaction() as session:
            outcome = InteractionRepository(session).insert(
                from_module_id,
                to_module_id,
                source=source,
                weight=weight,
                pattern=pattern,
                symbols=symbols,
                semantic=semantic,
                confidence=confidence,
                direction=direction,
            )
        if outcome is InsertOutcome.ALREADY_EXISTS:
            logger.debug(
                "interaction_exists",
                from_module_id=from_module_id,
                to_module_id=to_module_id,
                source=source.value,
            )
        return outcome

    def get_all_interactions(self) -> list[InteractionWithPaths]:
        with self._db.session() as session:
            return InteractionRepository(session).get_all()

    def get_interactions_by_source(self, source: InteractionSource) -> list[InteractionWithPaths]:
        with self._db.session() as session:
            return InteractionRepository(session).get_by_source(source)

    def get_interactions_by_pattern(
        self, pattern: InteractionPattern
    ) -> list[InteractionWithPaths]:
        with self._db.session() as session:
            return InteractionRepository(session).get_by_pattern(pattern)

    def get_interaction(self, interaction_id: int) -> InteractionWithPaths | None:
        with self._db.session() as session:
            return InteractionRepository(session).get_by_id(interaction_id)

    def get_interaction_by_modules(
        self, from_module_id: int, to_module_id: int
    ) -> Interaction | None:
        with self._db.session() as session:
            return InteractionRepository(session).get_by_modules(from_module_id, to_module_id)

    def get_interaction_keys(self) -> set[tuple[int, int]]:
        return {i.key for i in self.get_all_interactions()}

    def count_interactions(self, source: InteractionSource | None = None) -> int:
        with self._db.session() as session:
            return InteractionRepository(session).count(source)

    def update_interaction(
        self,
        interaction_id: int,
        *,
        semantic: str | None = None,
        pattern: InteractionPattern | None = None,
        direction: Direction | None = None,
        symbols: Iterable[str] | None = None,
    ) -> bool:
        with self._db.immediate_transaction() as session:
            return InteractionRepository(session).update(
                interaction_id,
                semantic=semantic,
                pattern=pattern,
                direction=direction,
                symbols=symbols,
            )

    def delete_interaction(self, interaction_id: int) -> bool:
        with self._db.immediate_transaction() as session:
            return InteractionRepository(session).delete(interaction_id)

    def delete_interactions(self, interaction_ids: Iterable[int]) -> int:
        with self._db.immediate_transaction() as session:
            return InteractionRepository(session).delete_many(interaction_ids)

    def clear_interactions(self) -> int:
        with self._db.immediate_transaction() as session:
            return InteractionRepository(session).clear()

    def remove_inferred_interactions_to_module(self, module_id: int) -> int:
        with self._db.immediate_transaction() as session:
            return InteractionRepository(session).remove_inferred_to_module(module_id)

    # -----------------------------------------------------------------
    # Coverage and analysis
    # -----------------------------------------------------------------

    def get_relationship_coverage(self) -> RelationshipCoverage:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_relationship_coverage()

    def get_relationship_coverage_breakdown(self) -> CoverageBreakdown:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_relationship_coverage_breakdown()

    def get_uncovered_module_pairs(self) -> list[UncoveredPair]:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_uncovered_module_pairs()

    def has_reverse_interaction(self, from_module_id: int, to_module_id: int) -> bool:
        with self._db.session() as session:
            return RelationshipAnalysis(session).has_reverse_interaction(
                from_module_id, to_module_id
            )

    def get_relationship_details_for_pair(
        self, from_module_id: int, to_module_id: int
    ) -> list[RelationshipDetail]:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_relationship_details_for_pair(
                from_module_id, to_module_id
            )

    def get_relationship_symbols_for_pair(
        self, from_module_id: int, to_module_id: int
    ) -> list[str]:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_relationship_symbols_for_pair(
                from_module_id, to_module_id
            )

    def get_inheritance_pairs(self) -> list[InheritancePair]:
        with self._db.session() as session:
            return RelationshipAnalysis(session).get_inheritance_pairs()

    def detect_fan_in_anomalies(
        self,
        *,
        iqr_multiplier: float = 3.0,
        min_fan_in: int = 8,
        max_ast_fan_in: int = 0,
    ) -> list[FanInAnomaly]:
        with self._db.session() as session:
            return RelationshipAnalysis(session).detect_fan_in_anomalies(
                iqr_multiplier=iqr_multiplier,
                min_fan_in=min_fan_in,
                max_ast_fan_in=max_ast_fan_in,
            )
