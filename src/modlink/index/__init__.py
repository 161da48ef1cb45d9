"""Index module - the code index the interaction engine reads and writes.

Public API:
- IndexStore: evidence queries and interaction persistence
- Table models and enums in ``modlink.index.models``

Internal implementations are in ``modlink.index._internal/``.
"""

from modlink.index._internal.db import Database, create_additional_indexes
from modlink.index._internal.indexing import (
    CalledSymbol,
    CoverageBreakdown,
    EnrichedCallEdge,
    FanInAnomaly,
    FileLevelImportPair,
    ImportModulePair,
    InheritancePair,
    InsertOutcome,
    InteractionWithPaths,
    ModuleCallEdge,
    ModuleMemberInfo,
    ModuleWithMembers,
    RelationshipCoverage,
    RelationshipDetail,
    UncoveredPair,
)
from modlink.index.models import (
    Confidence,
    Definition,
    DefinitionMetadata,
    Direction,
    File,
    Import,
    Interaction,
    InteractionPattern,
    InteractionSource,
    Module,
    ModuleMember,
    RelationshipAnnotation,
    RelationshipType,
    Symbol,
    Usage,
)
from modlink.index.store import IndexStore

__all__ = [
    "IndexStore",
    "Database",
    "create_additional_indexes",
    # Tables
    "Definition",
    "DefinitionMetadata",
    "File",
    "Import",
    "Interaction",
    "Module",
    "ModuleMember",
    "RelationshipAnnotation",
    "Symbol",
    "Usage",
    # Enums
    "Confidence",
    "Direction",
    "InteractionPattern",
    "InteractionSource",
    "RelationshipType",
    # Query results
    "CalledSymbol",
    "CoverageBreakdown",
    "EnrichedCallEdge",
    "FanInAnomaly",
    "FileLevelImportPair",
    "ImportModulePair",
    "InheritancePair",
    "InsertOutcome",
    "InteractionWithPaths",
    "ModuleCallEdge",
    "ModuleMemberInfo",
    "ModuleWithMembers",
    "RelationshipCoverage",
    "RelationshipDetail",
    "UncoveredPair",
]
