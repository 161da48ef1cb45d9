"""Deterministic checks over persisted llm-inferred interactions."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from modlink.index.models import InteractionSource
from modlink.interactions.process_groups import are_same_process

if TYPE_CHECKING:
    from modlink.index import IndexStore
    from modlink.interactions.process_groups import ProcessGroups

log = structlog.get_logger(__name__)


class IssueKind(str, Enum):
    REVERSED = "REVERSED"
    DIRECTION_CONFUSED = "DIRECTION_CONFUSED"
    NO_IMPORTS = "NO_IMPORTS"


@dataclass
class ValidationIssue:
    interaction_id: int
    from_module_id: int
    to_module_id: int
    from_path: str
    to_path: str
    kind: IssueKind
    detail: str

    @property
    def message(self) -> str:
        return f"{self.kind.value}: {self.detail}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def validate_inferred_interactions(
    store: IndexStore, groups: ProcessGroups
) -> list[ValidationIssue]:
    """Flag llm-inferred interactions that contradict static evidence.

    - ``REVERSED``: a static interaction already runs the other way.
    - ``DIRECTION_CONFUSED``: same process, no forward imports, reverse imports exist.
    - ``NO_IMPORTS``: same process, no imports either way.

    Cross-process interactions are only checked for reversal; they are not
    expected to have imports.
    """
    issues: list[ValidationIssue] = []
    for interaction in store.get_interactions_by_source(InteractionSource.LLM_INFERRED):
        from_id, to_id = interaction.from_module_id, interaction.to_module_id

        def issue(kind: IssueKind, detail: str) -> ValidationIssue:
            return ValidationIssue(
                interaction_id=interaction.id,
                from_module_id=from_id,
                to_module_id=to_id,
                from_path=interaction.from_module_path,
                to_path=interaction.to_module_path,
                kind=kind,
                detail=detail,
            )

        reverse = store.get_interaction_by_modules(to_id, from_id)
        if reverse is not None and reverse.source in InteractionSource.static_sources():
            issues.append(
                issue(
                    IssueKind.REVERSED,
                    "AST interaction exists in reverse direction "
                    f"({interaction.to_module_path} -> {interaction.from_module_path})",
                )
            )
            continue

        if not are_same_process(from_id, to_id, groups):
            continue
        if store.has_module_import_path(from_id, to_id):
            continue

        if store.has_module_import_path(to_id, from_id):
            issues.append(
                issue(
                    IssueKind.DIRECTION_CONFUSED,
                    "No forward imports, but reverse imports exist "
                    f"({interaction.to_module_path} imports from {interaction.from_module_path})",
                )
            )
        else:
            issues.append(
                issue(
                    IssueKind.NO_IMPORTS,
                    "No import path exists in either direction between these modules",
                )
            )

    log.info("inferred_interactions_validated", issues=len(issues))
    return issues


def fix_issues(store: IndexStore, issues: list[ValidationIssue]) -> int:
    """Delete every flagged interaction. Returns the number deleted."""
    return store.delete_interactions(i.interaction_id for i in issues)
