"""Batch semantic descriptions for call-graph edges.

Edges are sent to the LLM in fixed-size batches, strictly one after another.
Every edge comes back with exactly one suggestion: rows are matched to
edges by exact path pair first, then by path suffix, and any edge left
unmatched (or a whole batch whose request failed) gets the default
``"<from> uses <to>"`` semantic.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from modlink.interactions.csv_rows import BatchSemanticRow, parse_batch_semantic_rows
from modlink.interactions.models import InteractionSuggestion
from modlink.interactions.prompts import SEMANTIC_SYSTEM_PROMPT, render_semantic_user_prompt
from modlink.llm import CompletionRequest

if TYPE_CHECKING:
    from modlink.index import EnrichedCallEdge, Module
    from modlink.llm import LLMClient

log = structlog.get_logger(__name__)


def default_suggestion(edge: EnrichedCallEdge) -> InteractionSuggestion:
    from_last = edge.from_module_path.split(".")[-1] or "source"
    to_last = edge.to_module_path.split(".")[-1] or "target"
    return _suggestion(edge, f"{from_last} uses {to_last}")


def _suggestion(edge: EnrichedCallEdge, semantic: str) -> InteractionSuggestion:
    return InteractionSuggestion(
        from_module_id=edge.from_module_id,
        to_module_id=edge.to_module_id,
        from_module_path=edge.from_module_path,
        to_module_path=edge.to_module_path,
        semantic=semantic,
        pattern=edge.edge_pattern,
        symbols=edge.symbol_names,
        weight=edge.weight,
    )


def _match_edge(
    row: BatchSemanticRow, edges: Sequence[EnrichedCallEdge]
) -> EnrichedCallEdge | None:
    for edge in edges:
        if edge.from_module_path == row.from_module and edge.to_module_path == row.to_module:
            return edge
    for edge in edges:
        if edge.from_module_path.endswith(row.from_module) and edge.to_module_path.endswith(
            row.to_module
        ):
            return edge
    return None


def match_semantic_rows(
    response: str, edges: Sequence[EnrichedCallEdge]
) -> list[InteractionSuggestion]:
    """One suggestion per edge, in edge order. First matching row wins."""
    semantics: dict[tuple[int, int], str] = {}
    for row in parse_batch_semantic_rows(response):
        if not row.from_module or not row.to_module:
            continue
        edge = _match_edge(row, edges)
        if edge is None:
            continue
        semantics.setdefault((edge.from_module_id, edge.to_module_id), row.semantic)

    results: list[InteractionSuggestion] = []
    for edge in edges:
        semantic = semantics.get((edge.from_module_id, edge.to_module_id))
        results.append(_suggestion(edge, semantic) if semantic else default_suggestion(edge))
    return results


async def generate_batch_semantics(
    edges: Sequence[EnrichedCallEdge],
    client: LLMClient,
    *,
    model: str,
    max_tokens: int,
    modules_by_id: Mapping[int, Module],
) -> list[InteractionSuggestion]:
    """Describe one batch. LLM failures degrade to default semantics."""
    if not edges:
        return []
    request = CompletionRequest(
        model=model,
        system_prompt=SEMANTIC_SYSTEM_PROMPT,
        user_prompt=render_semantic_user_prompt(edges, modules_by_id),
        max_tokens=max_tokens,
    )
    try:
        response = await client.complete(request)
    except Exception as e:
        log.warning(
            "semantic_batch_failed", edges=len(edges), error=str(e), exc_info=True
        )
        return [default_suggestion(edge) for edge in edges]
    return match_semantic_rows(response, edges)


async def describe_edges(
    edges: Sequence[EnrichedCallEdge],
    client: LLMClient,
    *,
    model: str,
    max_tokens: int,
    batch_size: int,
    modules_by_id: Mapping[int, Module],
) -> list[InteractionSuggestion]:
    """Run ``generate_batch_semantics`` over consecutive batches of ``batch_size``."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    total_batches = (len(edges) + batch_size - 1) // batch_size
    suggestions: list[InteractionSuggestion] = []
    for index, start in enumerate(range(0, len(edges), batch_size), start=1):
        batch = edges[start : start + batch_size]
        batch_suggestions = await generate_batch_semantics(
            batch,
            client,
            model=model,
            max_tokens=max_tokens,
            modules_by_id=modules_by_id,
        )
        suggestions.extend(batch_suggestions)
        log.debug("semantic_batch_done", batch=index, total=total_batches, edges=len(batch))
    return suggestions
