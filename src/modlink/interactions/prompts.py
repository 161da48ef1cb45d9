"""Prompt texts and renderers for the three LLM passes.

- Batch semantics: one-line purpose for each call-graph edge.
- Cross-process: runtime connections between two process groups.
- Targeted: CONFIRM/SKIP for uncovered module pairs.

Renderers take already-fetched data and return plain strings; all store
access happens in the calling step.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from modlink.config.constants import (
    BOUNDARY_HINTS_MAX,
    BOUNDARY_PATTERN,
    CROSS_PROCESS_MAX_MEMBERS,
    DESCRIPTION_MAX_CHARS,
    MEMBER_KIND_PRIORITY,
    MEMBER_KIND_PRIORITY_DEFAULT,
    TARGETED_MAX_RELATIONSHIPS,
)
from modlink.index import EnrichedCallEdge, Module, ModuleMemberInfo
from modlink.interactions.models import MemberLine, TargetedCandidate

# =============================================================================
# Batch semantics
# =============================================================================

SEMANTIC_SYSTEM_PROMPT = """\
You are a software architect analyzing module-level dependencies.

For each module-to-module interaction, provide a semantic description of what the interaction does.

Output format - respond with ONLY a CSV table:

```csv
from_module,to_module,semantic
project.controllers,project.services.auth,"Controllers delegate authentication logic to the auth service for credential validation"
```

Guidelines:
- Describe WHY the source module calls the target module
- For UTILITY patterns: use generic descriptions like "Uses logging utilities", "Accesses database layer"
- For BUSINESS patterns: be specific about the business action (e.g., "Processes customer orders", "Validates user credentials")
- Keep descriptions concise (under 80 chars)
- Focus on the business purpose, not implementation details"""


def module_label(module: Module | None, *, max_chars: int | None = None) -> str:
    """``name - description`` (description optional), optionally truncated."""
    if module is None:
        return ""
    label = f"{module.name} - {module.description}" if module.description else module.name
    if max_chars is not None and len(label) > max_chars:
        label = label[: max_chars - 3].rstrip() + "..."
    return label


def render_semantic_user_prompt(
    edges: Sequence[EnrichedCallEdge], modules_by_id: Mapping[int, Module]
) -> str:
    blocks: list[str] = []
    for i, edge in enumerate(edges, start=1):
        symbols = ", ".join(
            f"{s.name} ({s.kind}, {s.call_count} calls)" for s in edge.called_symbols
        )
        lines = [
            f"{i}. [{edge.edge_pattern.value.upper()}] "
            f"{edge.from_module_path} -> {edge.to_module_path} ({edge.weight} calls)"
        ]
        from_label = module_label(
            modules_by_id.get(edge.from_module_id), max_chars=DESCRIPTION_MAX_CHARS
        )
        to_label = module_label(
            modules_by_id.get(edge.to_module_id), max_chars=DESCRIPTION_MAX_CHARS
        )
        if from_label:
            lines.append(f'   From: "{from_label}"')
        if to_label:
            lines.append(f'   To: "{to_label}"')
        lines.append(f"   Symbols: {symbols}")
        blocks.append("\n".join(lines))

    return (
        f"## Module Interactions to Describe ({len(edges)})\n\n"
        + "\n".join(blocks)
        + "\n\nGenerate semantic descriptions for each interaction in CSV format."
    )


# =============================================================================
# Cross-process inference
# =============================================================================

CROSS_PROCESS_SYSTEM_PROMPT = """\
You identify LOGICAL runtime connections between modules in separate processes.
These modules have NO import connectivity - they communicate via runtime protocols
(HTTP/REST, gRPC, WebSocket, IPC, message queues, CLI invocation, file I/O, etc.).

For each connection:
- Identify the SOURCE module (the one initiating the call/request)
- Identify the TARGET module (the one handling/receiving)
- Describe the communication mechanism and purpose

Use entity/name matching to pair modules:
- "useAccounts" (process A) likely calls "accountController" (process B)
- Match by entity name, action verbs, and module descriptions

Only report connections with medium or high confidence.

## Output Format
```csv
from_module_path,to_module_path,reason,confidence
project.frontend.hooks.useAccounts,project.backend.api.controllers,"Account data hooks call account API controllers via HTTP",high
```

Confidence levels:
- high: Names/patterns strongly suggest connection
- medium: Context supports it but names don't match exactly
- Skip low confidence - only report likely connections

DO NOT report:
- Connections within the same process group (those are visible via static analysis)
- Utility modules (logging, config, etc.)
- Shared type definitions (no runtime interaction)

## Architecture Constraints
- In client-server architectures, the CLIENT (frontend/app/sdk) initiates requests.
  Backend modules do NOT push to specific frontend components.
- Dev-time modules (CLI scripts, seed scripts, migrations) have NO runtime callers.
  Do NOT connect production modules to dev-time utilities.
- A realistic cross-process call surface has 3-8 callers per target, not dozens.
  If you find yourself connecting most modules in one group to a single target, stop."""


def _member_sort_key(member: ModuleMemberInfo) -> int:
    return MEMBER_KIND_PRIORITY.get(member.kind, MEMBER_KIND_PRIORITY_DEFAULT)


def format_members(members: Sequence[ModuleMemberInfo]) -> str:
    """Members sorted function < class < variable < other, capped with an overflow count."""
    if not members:
        return ""
    ordered = sorted(members, key=_member_sort_key)
    shown = ", ".join(f"{m.name} ({m.kind})" for m in ordered[:CROSS_PROCESS_MAX_MEMBERS])
    extra = len(ordered) - CROSS_PROCESS_MAX_MEMBERS
    suffix = f" (+{extra} more)" if extra > 0 else ""
    return f"\n  Members: {shown}{suffix}"


def is_boundary_module(module: Module, members: Sequence[ModuleMemberInfo]) -> bool:
    if BOUNDARY_PATTERN.search(module.full_path) or BOUNDARY_PATTERN.search(module.name):
        return True
    return any(BOUNDARY_PATTERN.search(m.name) for m in members)


def _render_group(
    label: str,
    modules: Sequence[Module],
    members_by_id: Mapping[int, Sequence[ModuleMemberInfo]],
) -> list[str]:
    lines = [f'## Process Group: "{label}" ({len(modules)} modules)']
    for module in modules:
        members = members_by_id.get(module.id or 0, ())
        description = f" - {module.description}" if module.description else ""
        lines.append(
            f'- {module.full_path}: "{module.name}"{description}{format_members(members)}'
        )

    boundary = [m for m in modules if is_boundary_module(m, members_by_id.get(m.id or 0, ()))]
    if boundary:
        lines.append(f'\nLikely boundary modules in "{label}":')
        lines.extend(f"  * {m.full_path}" for m in boundary[:BOUNDARY_HINTS_MAX])
    return lines


def render_cross_process_user_prompt(
    group_a: Sequence[Module],
    group_b: Sequence[Module],
    label_a: str,
    label_b: str,
    members_by_id: Mapping[int, Sequence[ModuleMemberInfo]],
    cross_edges: Iterable[tuple[str, str]],
) -> str:
    parts = _render_group(label_a, group_a, members_by_id)
    parts.append("")
    parts.extend(_render_group(label_b, group_b, members_by_id))
    parts.append("")
    parts.append("## Existing AST-Detected Cross-Process Connections (for reference)")

    edge_lines = [f"- {from_path} -> {to_path}" for from_path, to_path in cross_edges]
    parts.extend(edge_lines or ["(None detected - this is why we need inference!)"])

    parts.append("")
    parts.append("Identify runtime connections between these two process groups.")
    return "\n".join(parts)


# =============================================================================
# Targeted coverage inference
# =============================================================================

TARGETED_SYSTEM_PROMPT = """\
You are reviewing module pairs that have symbol-level relationships but no detected interaction.
For each pair, determine if a real runtime interaction exists and describe it.

PRECISION OVER RECALL: when in doubt, SKIP. Only CONFIRM connections where you can identify a concrete data flow from a specific source member to a specific target member.

## Decision Rules (CRITICAL)
- If "Forward imports: NONE" AND "Process: same-process" -> SKIP (no static dependency exists)
- If "Reverse AST interaction: YES" -> SKIP (the relationship direction is reversed; the reverse is already detected)
- If "Forward imports: YES" -> CONFIRM is likely valid
- If "Process: separate-process" -> use module descriptions and relationship semantics to decide
- When in doubt about same-process pairs with no imports -> SKIP (trust static analysis)

## Output Format
```csv
from_module_path,to_module_path,action,reason,confidence
project.backend.services.billing,project.backend.data.models.transaction,CONFIRM,"Billing service records transaction status on completion",high
project.shared.types,project.backend.models,SKIP,"Shared type definitions, no runtime interaction",
```

For each pair:
- CONFIRM if a real interaction exists (provide a semantic description as reason)
- SKIP if it's an artifact (shared types, transitive dependency, test-only, or no static evidence)
- confidence is optional: high or medium"""


def _yes_none(flag: bool) -> str:
    return "YES" if flag else "NONE"


def _render_member_lines(title: str, members: Sequence[MemberLine]) -> list[str]:
    if not members:
        return []
    lines = [f"   {title}:"]
    for m in members:
        purpose = f" - {m.purpose}" if m.purpose else ""
        lines.append(f"     - {m.name} ({m.kind}){purpose}")
    return lines


def render_targeted_user_prompt(candidates: Sequence[TargetedCandidate]) -> str:
    blocks: list[str] = []
    for i, c in enumerate(candidates, start=1):
        lines = [f"{i}. {c.from_path} -> {c.to_path}"]
        if c.from_label:
            lines.append(f'   From: "{c.from_label}"')
        if c.to_label:
            lines.append(f'   To: "{c.to_label}"')
        lines.append(f"   Process: {c.process_description}")
        lines.append(
            f"   Forward imports: {_yes_none(c.forward_imports)}"
            f" | Reverse imports: {_yes_none(c.reverse_imports)}"
            f" | Reverse AST interaction: {'YES' if c.reverse_ast else 'NO'}"
        )

        if c.relationships:
            lines.append(f"   Relationship symbols ({len(c.relationships)}):")
            for rd in c.relationships[:TARGETED_MAX_RELATIONSHIPS]:
                lines.append(f'     - {rd.from_name} -> {rd.to_name}: "{rd.semantic}"')
            extra = len(c.relationships) - TARGETED_MAX_RELATIONSHIPS
            if extra > 0:
                lines.append(f"     (+{extra} more)")

        lines.extend(_render_member_lines("Source members", c.source_members))
        lines.extend(_render_member_lines("Target members", c.target_members))
        blocks.append("\n".join(lines))

    return (
        f"## Module Pairs to Evaluate ({len(candidates)})\n\n"
        + "\n".join(blocks)
        + "\n\nEvaluate each pair and output CONFIRM or SKIP in CSV format."
    )
