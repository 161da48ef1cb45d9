"""Cross-process interaction inference.

Modules in different process groups share no imports, so static analysis
cannot see how they talk. For every pair of groups the LLM is shown both
member lists, likely boundary modules, and any call edges that already
cross, and asked which modules call which at runtime. Each proposal is
resolved by exact module path, low-confidence rows are dropped, and the
rest go through the structural gate. Accepted keys join the run state
immediately so later group pairs cannot propose them again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from modlink.config.constants import INFERRED_TARGET_SYMBOL_KINDS, INFERRED_TARGET_SYMBOLS_MAX
from modlink.index.models import Confidence
from modlink.interactions.csv_rows import parse_cross_process_rows
from modlink.interactions.gates import gate_inferred_interaction
from modlink.interactions.models import InferredInteraction
from modlink.interactions.process_groups import (
    get_cross_process_group_pairs,
    get_process_group_label,
)
from modlink.interactions.prompts import (
    CROSS_PROCESS_SYSTEM_PROMPT,
    render_cross_process_user_prompt,
)
from modlink.llm import CompletionRequest

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from modlink.index import IndexStore, Module, ModuleCallEdge, ModuleMemberInfo
    from modlink.interactions.models import InferenceRunState
    from modlink.interactions.process_groups import ProcessGroups
    from modlink.llm import LLMClient

log = structlog.get_logger(__name__)


def _crossing_edges(
    edges: Sequence[ModuleCallEdge], group_a: Sequence[Module], group_b: Sequence[Module]
) -> list[tuple[str, str]]:
    ids_a = {m.id for m in group_a}
    ids_b = {m.id for m in group_b}
    return [
        (e.from_module_path, e.to_module_path)
        for e in edges
        if (e.from_module_id in ids_a and e.to_module_id in ids_b)
        or (e.from_module_id in ids_b and e.to_module_id in ids_a)
    ]


def parse_cross_process_response(
    response: str,
    modules_by_path: Mapping[str, Module],
    state: InferenceRunState,
    store: IndexStore,
) -> list[InferredInteraction]:
    """Resolve, filter and gate proposal rows. Accepted keys are added to ``state``."""
    results: list[InferredInteraction] = []
    for row in parse_cross_process_rows(response):
        from_module = modules_by_path.get(row.from_module_path)
        to_module = modules_by_path.get(row.to_module_path)
        if from_module is None or to_module is None:
            continue
        if row.is_low_confidence:
            continue

        gate = gate_inferred_interaction(from_module, to_module, state.existing_pairs, store)
        if not gate.passed:
            continue

        assert from_module.id is not None and to_module.id is not None
        results.append(
            InferredInteraction(
                from_module_id=from_module.id,
                to_module_id=to_module.id,
                reason=row.reason or "LLM inferred connection",
                confidence=Confidence.HIGH if row.confidence == "high" else Confidence.MEDIUM,
            )
        )
        state.mark(from_module.id, to_module.id)
    return results


async def infer_cross_process_interactions(
    store: IndexStore,
    groups: ProcessGroups,
    client: LLMClient,
    state: InferenceRunState,
    *,
    model: str,
    max_tokens: int,
) -> list[InferredInteraction]:
    """Ask the LLM for runtime connections between every pair of process groups."""
    if groups.group_count < 2:
        log.info("no cross-process inference needed", groups=groups.group_count)
        return []

    call_edges = store.get_module_call_graph()
    state.existing_pairs.update((e.from_module_id, e.to_module_id) for e in call_edges)
    state.existing_pairs.update(store.get_interaction_keys())

    modules_by_path = {m.full_path: m for m in store.get_all_modules()}
    members_by_id: dict[int, list[ModuleMemberInfo]] = {
        m.id: m.members for m in store.get_all_modules_with_members()
    }

    results: list[InferredInteraction] = []
    for group_a, group_b in get_cross_process_group_pairs(groups):
        label_a = get_process_group_label(group_a)
        label_b = get_process_group_label(group_b)
        request = CompletionRequest(
            model=model,
            system_prompt=CROSS_PROCESS_SYSTEM_PROMPT,
            user_prompt=render_cross_process_user_prompt(
                group_a,
                group_b,
                label_a,
                label_b,
                members_by_id,
                _crossing_edges(call_edges, group_a, group_b),
            ),
            max_tokens=max_tokens,
        )
        try:
            response = await client.complete(request)
        except Exception as e:
            log.warning(
                "cross_process_pair_failed",
                group_a=label_a,
                group_b=label_b,
                error=str(e),
                exc_info=True,
            )
            continue

        accepted = parse_cross_process_response(response, modules_by_path, state, store)
        log.info(
            "cross_process_pair_inferred",
            group_a=label_a,
            group_b=label_b,
            accepted=len(accepted),
        )
        results.extend(accepted)
    return results


def target_symbols(store: IndexStore, to_module_id: int) -> list[str]:
    """Function and class names of the target module, capped."""
    target = store.get_module_with_members(to_module_id)
    if target is None:
        return []
    names = [m.name for m in target.members if m.kind in INFERRED_TARGET_SYMBOL_KINDS]
    return names[:INFERRED_TARGET_SYMBOLS_MAX]
