"""Evidence queries: call graph, import graph, modules, interactions, coverage."""

from modlink.index._internal.indexing.call_graph import (
    CalledSymbol,
    CallGraphQueries,
    EnrichedCallEdge,
    ModuleCallEdge,
    classify_edge,
)
from modlink.index._internal.indexing.coverage import (
    CoverageBreakdown,
    FanInAnomaly,
    InheritancePair,
    RelationshipAnalysis,
    RelationshipCoverage,
    RelationshipDetail,
    UncoveredPair,
)
from modlink.index._internal.indexing.import_graph import (
    FileLevelImportPair,
    ImportGraph,
    ImportModulePair,
)
from modlink.index._internal.indexing.interactions import (
    InsertOutcome,
    InteractionRepository,
    InteractionWithPaths,
)
from modlink.index._internal.indexing.modules import (
    ModuleMemberInfo,
    ModuleQueries,
    ModuleWithMembers,
)

__all__ = [
    # Call graph
    "CalledSymbol",
    "CallGraphQueries",
    "EnrichedCallEdge",
    "ModuleCallEdge",
    "classify_edge",
    # Coverage
    "CoverageBreakdown",
    "FanInAnomaly",
    "InheritancePair",
    "RelationshipAnalysis",
    "RelationshipCoverage",
    "RelationshipDetail",
    "UncoveredPair",
    # Imports
    "FileLevelImportPair",
    "ImportGraph",
    "ImportModulePair",
    # Interactions
    "InsertOutcome",
    "InteractionRepository",
    "InteractionWithPaths",
    # Modules
    "ModuleMemberInfo",
    "ModuleQueries",
    "ModuleWithMembers",
]
