"""Interaction engine.

Public API:
- InteractionPipeline: full generate run
- validate_inferred_interactions / fix_issues: post-hoc checks
- Process grouping, structural gate and CSV helpers for callers that run
  single steps.
"""

from modlink.interactions.builder import BuildCounts, InteractionBuilder
from modlink.interactions.coverage import (
    CoverageLoopResult,
    partition_uncovered_pairs,
    remove_fan_in_anomalies,
    run_coverage_inference,
)
from modlink.interactions.cross_process import infer_cross_process_interactions
from modlink.interactions.gates import gate_inferred_interaction, is_type_only_module
from modlink.interactions.models import (
    GateResult,
    GenerateResult,
    InferenceRunState,
    InferredInteraction,
    InteractionSuggestion,
)
from modlink.interactions.pipeline import InteractionPipeline
from modlink.interactions.process_groups import (
    ProcessGroups,
    are_same_process,
    build_process_groups,
    compute_process_groups,
    get_cross_process_group_pairs,
    get_process_description,
    get_process_group_label,
)
from modlink.interactions.semantics import default_suggestion, generate_batch_semantics
from modlink.interactions.validation import (
    IssueKind,
    ValidationIssue,
    fix_issues,
    validate_inferred_interactions,
)

__all__ = [
    "InteractionPipeline",
    "GenerateResult",
    "InferenceRunState",
    # Steps
    "BuildCounts",
    "InteractionBuilder",
    "CoverageLoopResult",
    "generate_batch_semantics",
    "default_suggestion",
    "infer_cross_process_interactions",
    "partition_uncovered_pairs",
    "remove_fan_in_anomalies",
    "run_coverage_inference",
    # Gate
    "GateResult",
    "gate_inferred_interaction",
    "is_type_only_module",
    # Process groups
    "ProcessGroups",
    "are_same_process",
    "build_process_groups",
    "compute_process_groups",
    "get_cross_process_group_pairs",
    "get_process_description",
    "get_process_group_label",
    # Values
    "InferredInteraction",
    "InteractionSuggestion",
    # Validation
    "IssueKind",
    "ValidationIssue",
    "fix_issues",
    "validate_inferred_interactions",
]
