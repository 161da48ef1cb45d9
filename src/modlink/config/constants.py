"""Configuration constants.

This module contains values that should NOT be user-configurable: prompt
shape limits and classification cutoffs that the prompts and tests are
written against.

For configurable values, see models.py (InteractionsConfig, LLMConfig).
"""

import re

# =============================================================================
# Call Graph Classification
# =============================================================================

CALL_CONTEXTS = (
    "call_expression",
    "new_expression",
    "jsx_self_closing_element",
    "jsx_opening_element",
)
"""Usage contexts that count as a call."""

HIGH_FREQUENCY_WEIGHT = 10
"""Edges with more calls than this are high-frequency."""

UTILITY_MIN_CALLERS = 3
"""Minimum distinct caller definitions for a utility edge."""

UTILITY_MIN_AVG_CALLS = 3
"""Average calls per symbol must exceed this for a utility edge."""

TYPE_ONLY_KINDS = frozenset({"interface", "type", "enum"})
"""Definition kinds that carry no runtime behavior."""

# =============================================================================
# Prompt Limits
# =============================================================================

DESCRIPTION_MAX_CHARS = 120
"""Module descriptions are truncated to this length in semantic prompts."""

CROSS_PROCESS_MAX_MEMBERS = 8
"""Members listed per module in cross-process prompts."""

BOUNDARY_HINTS_MAX = 10
"""Boundary modules hinted per process group."""

TARGETED_MAX_RELATIONSHIPS = 5
"""Relationship symbol pairs listed per candidate in targeted prompts."""

TARGETED_MAX_MEMBERS = 5
"""Source/target members listed per candidate in targeted prompts."""

IMPORT_SYMBOLS_MAX = 20
"""Symbols stored on an import-based interaction."""

IMPORT_SEMANTIC_NAMES = 3
"""Symbol names spelled out in an import-based semantic."""

INFERRED_TARGET_SYMBOLS_MAX = 10
"""Target functions/classes stored on a cross-process interaction."""

INFERRED_TARGET_SYMBOL_KINDS = frozenset({"function", "class"})

MEMBER_KIND_PRIORITY = {"function": 0, "class": 1, "variable": 2}
"""Sort order for listed members; unknown kinds sort last."""

MEMBER_KIND_PRIORITY_DEFAULT = 3

BOUNDARY_PATTERN = re.compile(
    r"\b(router|controller|handler|hook|client|endpoint|api|gateway|service"
    r"|provider|adapter|facade|proxy|middleware)\b",
    re.IGNORECASE,
)
"""Names that suggest a module sits on a process boundary."""

# =============================================================================
# Metadata Keys
# =============================================================================

PURPOSE_METADATA_KEY = "purpose"
"""Definition metadata key rendered next to members in targeted prompts."""
