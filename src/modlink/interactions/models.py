"""Value types shared by the interaction engine steps."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from modlink.index import RelationshipCoverage, RelationshipDetail
from modlink.index.models import Confidence, InteractionPattern


@dataclass
class InteractionSuggestion:
    """A call-graph edge with its semantic, ready to persist."""

    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    semantic: str
    pattern: InteractionPattern
    symbols: list[str] = field(default_factory=list)
    weight: int = 0

    @property
    def key(self) -> tuple[int, int]:
        return (self.from_module_id, self.to_module_id)


@dataclass
class InferredInteraction:
    """An LLM proposal that already passed the structural gate."""

    from_module_id: int
    to_module_id: int
    reason: str
    confidence: Confidence = Confidence.MEDIUM

    @property
    def key(self) -> tuple[int, int]:
        return (self.from_module_id, self.to_module_id)


@dataclass(frozen=True, slots=True)
class GateResult:
    passed: bool
    reason: str | None = None

    @classmethod
    def accept(cls) -> GateResult:
        return cls(passed=True)

    @classmethod
    def reject(cls, reason: str) -> GateResult:
        return cls(passed=False, reason=reason)


@dataclass
class InferenceRunState:
    """Mutable state threaded through one generate run.

    ``existing_pairs`` holds every ordered ``(from, to)`` key that is already
    persisted or was accepted earlier in the run; the gate rejects
    proposals for these keys. Steps add to it as they go so later passes
    see earlier decisions.
    """

    existing_pairs: set[tuple[int, int]] = field(default_factory=set)
    attempts: int = 0
    inserted_per_pass: list[int] = field(default_factory=list)

    def mark(self, from_module_id: int, to_module_id: int) -> None:
        self.existing_pairs.add((from_module_id, to_module_id))

    def has(self, from_module_id: int, to_module_id: int) -> bool:
        return (from_module_id, to_module_id) in self.existing_pairs


@dataclass(frozen=True, slots=True)
class MemberLine:
    name: str
    kind: str
    purpose: str | None = None


@dataclass
class TargetedCandidate:
    """An uncovered module pair plus the static evidence shown to the LLM."""

    from_module_id: int
    to_module_id: int
    from_path: str
    to_path: str
    from_label: str
    to_label: str
    process_description: str
    forward_imports: bool
    reverse_imports: bool
    reverse_ast: bool
    relationships: list[RelationshipDetail] = field(default_factory=list)
    source_members: list[MemberLine] = field(default_factory=list)
    target_members: list[MemberLine] = field(default_factory=list)

    @property
    def key(self) -> tuple[int, int]:
        return (self.from_module_id, self.to_module_id)


@dataclass
class GenerateResult:
    """Counts reported by one ``InteractionPipeline.run``."""

    total_edges: int = 0
    business_count: int = 0
    utility_count: int = 0
    ast_interactions: int = 0
    test_internal_count: int = 0
    inheritance_interactions: int = 0
    import_based_interactions: int = 0
    file_level_interactions: int = 0
    skipped_duplicates: int = 0
    process_group_count: int = 0
    inferred_interactions: int = 0
    fan_in_removed: int = 0
    targeted_interactions: int = 0
    coverage_passes: int = 0
    dry_run: bool = False
    relationship_coverage: RelationshipCoverage | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
