"""Coverage gate and targeted inference loop.

After the deterministic and cross-process steps, some module pairs still
have symbol-level relationships but no interaction. Each pass:

1. measures relationship coverage and stops once it meets the threshold
   (or nothing is uncovered),
2. buckets uncovered pairs: cross-process pairs and same-process pairs with
   forward imports go to the LLM, everything else is skipped on static
   evidence alone,
3. asks the LLM to CONFIRM or SKIP each candidate with a stricter prompt,
4. gates and inserts the confirmations.

The loop runs at most ``max_gate_retries`` passes and stops early when a
pass inserts nothing.

Fan-in cleanup lives here too: it removes llm-inferred interactions that
converge on one target far more than the rest of the graph does.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from modlink.config.constants import PURPOSE_METADATA_KEY, TARGETED_MAX_MEMBERS
from modlink.index import InsertOutcome
from modlink.index.models import Confidence, InteractionPattern, InteractionSource
from modlink.interactions.csv_rows import parse_targeted_rows
from modlink.interactions.gates import gate_inferred_interaction
from modlink.interactions.models import InferredInteraction, MemberLine, TargetedCandidate
from modlink.interactions.process_groups import are_same_process, get_process_description
from modlink.interactions.prompts import (
    TARGETED_SYSTEM_PROMPT,
    module_label,
    render_targeted_user_prompt,
)
from modlink.llm import CompletionRequest

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from modlink.index import FanInAnomaly, IndexStore, Module, UncoveredPair
    from modlink.interactions.models import InferenceRunState
    from modlink.interactions.process_groups import ProcessGroups
    from modlink.llm import LLMClient

log = structlog.get_logger(__name__)

SKIP_UNKNOWN_MODULE = "unknown_module"
SKIP_REVERSE_AST = "reverse_ast"
SKIP_REVERSE_IMPORTS = "reverse_imports"
SKIP_NO_IMPORTS = "no_imports"


@dataclass
class PairPartition:
    needs_llm: list[UncoveredPair] = field(default_factory=list)
    skipped: Counter[str] = field(default_factory=Counter)

    @property
    def skipped_total(self) -> int:
        return sum(self.skipped.values())


@dataclass
class CoverageLoopResult:
    passes: int = 0
    inserted: int = 0
    auto_skipped: int = 0
    stop_reason: str = "max_retries"


# =============================================================================
# Bucketing
# =============================================================================


def partition_uncovered_pairs(
    pairs: Sequence[UncoveredPair],
    modules_by_id: Mapping[int, Module],
    groups: ProcessGroups,
    store: IndexStore,
) -> PairPartition:
    """Split uncovered pairs into LLM candidates and auto-skips."""
    partition = PairPartition()
    for pair in pairs:
        from_id, to_id = pair.from_module_id, pair.to_module_id
        if from_id not in modules_by_id or to_id not in modules_by_id:
            partition.skipped[SKIP_UNKNOWN_MODULE] += 1
            continue

        # Separate processes talk through runtime protocols; imports prove nothing
        if not are_same_process(from_id, to_id, groups):
            partition.needs_llm.append(pair)
            continue

        if store.has_module_import_path(from_id, to_id):
            partition.needs_llm.append(pair)
            continue

        if store.has_reverse_interaction(from_id, to_id):
            reason = SKIP_REVERSE_AST
        elif store.has_module_import_path(to_id, from_id):
            reason = SKIP_REVERSE_IMPORTS
        else:
            reason = SKIP_NO_IMPORTS
        partition.skipped[reason] += 1
        log.debug(
            "coverage_pair_skipped",
            reason=reason,
            from_module=pair.from_path,
            to_module=pair.to_path,
        )
    return partition


# =============================================================================
# Targeted inference
# =============================================================================


def build_targeted_candidates(
    pairs: Sequence[UncoveredPair],
    modules_by_id: Mapping[int, Module],
    groups: ProcessGroups,
    store: IndexStore,
) -> list[TargetedCandidate]:
    """Collect the static evidence shown for each pair in the targeted prompt."""
    module_ids = {i for p in pairs for i in (p.from_module_id, p.to_module_id)}
    definitions = {
        module_id: store.get_module_definitions(module_id)[:TARGETED_MAX_MEMBERS]
        for module_id in module_ids
    }
    definition_ids = [d.id for defs in definitions.values() for d in defs if d.id is not None]
    purposes = store.get_definition_metadata_values(definition_ids, PURPOSE_METADATA_KEY)

    def members(module_id: int) -> list[MemberLine]:
        return [
            MemberLine(name=d.name, kind=d.kind, purpose=purposes.get(d.id or 0))
            for d in definitions[module_id]
        ]

    candidates: list[TargetedCandidate] = []
    for p in pairs:
        from_id, to_id = p.from_module_id, p.to_module_id
        candidates.append(
            TargetedCandidate(
                from_module_id=from_id,
                to_module_id=to_id,
                from_path=p.from_path,
                to_path=p.to_path,
                from_label=module_label(modules_by_id.get(from_id)),
                to_label=module_label(modules_by_id.get(to_id)),
                process_description=get_process_description(from_id, to_id, groups),
                forward_imports=store.has_module_import_path(from_id, to_id),
                reverse_imports=store.has_module_import_path(to_id, from_id),
                reverse_ast=store.has_reverse_interaction(from_id, to_id),
                relationships=store.get_relationship_details_for_pair(from_id, to_id),
                source_members=members(from_id),
                target_members=members(to_id),
            )
        )
    return candidates


def parse_targeted_response(
    response: str,
    candidates: Sequence[TargetedCandidate],
    modules_by_id: Mapping[int, Module],
    state: InferenceRunState,
    store: IndexStore,
) -> list[InferredInteraction]:
    """CONFIRM rows for pairs that were asked about, after gating."""
    by_paths = {(c.from_path, c.to_path): c for c in candidates}
    results: list[InferredInteraction] = []

    for row in parse_targeted_rows(response):
        if not row.is_confirm:
            continue
        candidate = by_paths.get((row.from_module_path, row.to_module_path))
        if candidate is None:
            continue
        from_module = modules_by_id.get(candidate.from_module_id)
        to_module = modules_by_id.get(candidate.to_module_id)
        if from_module is None or to_module is None:
            continue

        gate = gate_inferred_interaction(from_module, to_module, state.existing_pairs, store)
        if not gate.passed:
            continue

        results.append(
            InferredInteraction(
                from_module_id=candidate.from_module_id,
                to_module_id=candidate.to_module_id,
                reason=row.reason or "Targeted inference",
                confidence=Confidence.HIGH if row.confidence == "high" else Confidence.MEDIUM,
            )
        )
        state.mark(candidate.from_module_id, candidate.to_module_id)
    return results


async def infer_targeted_interactions(
    candidates: Sequence[TargetedCandidate],
    modules_by_id: Mapping[int, Module],
    client: LLMClient,
    state: InferenceRunState,
    store: IndexStore,
    *,
    model: str,
    max_tokens: int,
) -> list[InferredInteraction]:
    if not candidates:
        return []
    request = CompletionRequest(
        model=model,
        system_prompt=TARGETED_SYSTEM_PROMPT,
        user_prompt=render_targeted_user_prompt(candidates),
        max_tokens=max_tokens,
    )
    try:
        response = await client.complete(request)
    except Exception as e:
        log.warning(
            "targeted_inference_failed",
            candidates=len(candidates),
            error=str(e),
            exc_info=True,
        )
        return []
    return parse_targeted_response(response, candidates, modules_by_id, state, store)


def interaction_symbols(store: IndexStore, from_module_id: int, to_module_id: int) -> list[str]:
    """Imported names when there are any, else relationship target names."""
    imported = store.get_module_imported_symbols(from_module_id, to_module_id)
    if imported:
        return imported
    return store.get_relationship_symbols_for_pair(from_module_id, to_module_id)


# =============================================================================
# Loop
# =============================================================================


async def run_coverage_inference(
    store: IndexStore,
    groups: ProcessGroups,
    client: LLMClient,
    state: InferenceRunState,
    *,
    model: str,
    max_tokens: int,
    min_coverage: float,
    max_gate_retries: int,
) -> CoverageLoopResult:
    """Drive relationship coverage toward ``min_coverage`` with bounded passes."""
    result = CoverageLoopResult()
    modules_by_id = {m.id: m for m in store.get_all_modules() if m.id is not None}
    # Persisted rows are authoritative: fan-in cleanup may have deleted accepted pairs
    state.existing_pairs = store.get_interaction_keys()

    for attempt in range(max_gate_retries):
        coverage = store.get_relationship_coverage()
        breakdown = store.get_relationship_coverage_breakdown()
        if coverage.coverage_percent >= min_coverage or breakdown.no_call_edge == 0:
            result.stop_reason = "threshold_met"
            break

        log.info(
            "coverage_pass_started",
            attempt=attempt + 1,
            coverage=round(coverage.coverage_percent, 1),
            target=min_coverage,
            uncovered=breakdown.no_call_edge,
        )

        uncovered = store.get_uncovered_module_pairs()
        if not uncovered:
            result.stop_reason = "no_uncovered_pairs"
            break

        partition = partition_uncovered_pairs(uncovered, modules_by_id, groups, store)
        result.auto_skipped += partition.skipped_total
        if partition.skipped:
            log.info(
                "coverage_pairs_prefiltered",
                auto_skipped=partition.skipped_total,
                sent_to_llm=len(partition.needs_llm),
                **dict(partition.skipped),
            )
        if not partition.needs_llm:
            result.stop_reason = "no_candidates"
            break

        candidates = build_targeted_candidates(partition.needs_llm, modules_by_id, groups, store)
        proposals = await infer_targeted_interactions(
            candidates,
            modules_by_id,
            client,
            state,
            store,
            model=model,
            max_tokens=max_tokens,
        )

        inserted = 0
        for proposal in proposals:
            symbols = interaction_symbols(store, proposal.from_module_id, proposal.to_module_id)
            outcome = store.insert_interaction(
                proposal.from_module_id,
                proposal.to_module_id,
                source=InteractionSource.LLM_INFERRED,
                weight=1,
                pattern=InteractionPattern.BUSINESS,
                symbols=symbols or None,
                semantic=proposal.reason,
                confidence=proposal.confidence,
            )
            if outcome is InsertOutcome.INSERTED:
                inserted += 1

        result.passes += 1
        result.inserted += inserted
        state.attempts += 1
        state.inserted_per_pass.append(inserted)
        log.info("coverage_pass_done", attempt=attempt + 1, inserted=inserted)

        if inserted == 0:
            result.stop_reason = "no_progress"
            break

    return result


# =============================================================================
# Fan-in cleanup
# =============================================================================


def remove_fan_in_anomalies(
    store: IndexStore,
    *,
    iqr_multiplier: float,
    min_fan_in: int,
    max_ast_fan_in: int,
) -> tuple[list[FanInAnomaly], int]:
    """Delete llm-inferred interactions into anomalous targets. Returns (anomalies, removed)."""
    anomalies = store.detect_fan_in_anomalies(
        iqr_multiplier=iqr_multiplier,
        min_fan_in=min_fan_in,
        max_ast_fan_in=max_ast_fan_in,
    )
    removed = 0
    for anomaly in anomalies:
        count = store.remove_inferred_interactions_to_module(anomaly.module_id)
        removed += count
        log.warning(
            "fan_in_anomaly_removed",
            target=anomaly.module_path,
            removed=count,
            llm_fan_in=anomaly.llm_fan_in,
            ast_fan_in=anomaly.ast_fan_in,
        )
    return anomalies, removed
