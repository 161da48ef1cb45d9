"""Tests for batch semantic descriptions of call-graph edges."""

from __future__ import annotations

import pytest

from modlink.core.errors import LLMError
from modlink.index import CalledSymbol, EnrichedCallEdge, InteractionPattern
from modlink.interactions import default_suggestion, generate_batch_semantics
from modlink.interactions.prompts import SEMANTIC_SYSTEM_PROMPT
from modlink.interactions.semantics import describe_edges, match_semantic_rows
from tests.support import ScriptedLLMClient


def _edge(from_id: int, to_id: int, from_path: str, to_path: str) -> EnrichedCallEdge:
    return EnrichedCallEdge(
        from_module_id=from_id,
        to_module_id=to_id,
        from_module_path=from_path,
        to_module_path=to_path,
        weight=2,
        called_symbols=[CalledSymbol(name="createOrder", kind="function", call_count=2)],
        distinct_callers=1,
        avg_calls_per_symbol=2.0,
        edge_pattern=InteractionPattern.BUSINESS,
    )


@pytest.fixture
def edges() -> list[EnrichedCallEdge]:
    return [
        _edge(1, 2, "project.api.checkout", "project.orders"),
        _edge(1, 3, "project.api.checkout", "project.billing"),
        _edge(4, 2, "project.jobs", "project.orders"),
    ]


class TestMatchSemanticRows:
    """Every edge gets exactly one suggestion, in edge order."""

    def test_given_full_response_when_matched_then_semantics_in_edge_order(
        self, edges: list[EnrichedCallEdge]
    ) -> None:
        # Given
        response = (
            "```csv\n"
            "from_module,to_module,semantic\n"
            "project.jobs,project.orders,Expires stale orders\n"
            "project.api.checkout,project.orders,Places the order\n"
            "project.api.checkout,project.billing,Charges the card\n"
            "```"
        )

        # When
        suggestions = match_semantic_rows(response, edges)

        # Then
        assert [s.semantic for s in suggestions] == [
            "Places the order",
            "Charges the card",
            "Expires stale orders",
        ]
        assert [s.key for s in suggestions] == [(1, 2), (1, 3), (4, 2)]
        assert suggestions[0].symbols == ["createOrder"]
        assert suggestions[0].weight == 2

    def test_given_shortened_paths_when_matched_then_suffix_match(
        self, edges: list[EnrichedCallEdge]
    ) -> None:
        response = "checkout,billing,Charges the card"

        suggestions = match_semantic_rows(response, edges)

        assert suggestions[1].semantic == "Charges the card"

    def test_given_missing_rows_when_matched_then_default_semantic(
        self, edges: list[EnrichedCallEdge]
    ) -> None:
        response = "project.api.checkout,project.orders,Places the order"

        suggestions = match_semantic_rows(response, edges)

        assert len(suggestions) == 3
        assert suggestions[1].semantic == "checkout uses billing"
        assert suggestions[2].semantic == "jobs uses orders"

    def test_given_repeated_rows_when_matched_then_first_wins(
        self, edges: list[EnrichedCallEdge]
    ) -> None:
        response = (
            "project.jobs,project.orders,First answer\n"
            "project.jobs,project.orders,Second answer\n"
        )

        suggestions = match_semantic_rows(response, edges)

        assert suggestions[2].semantic == "First answer"

    def test_given_unknown_rows_when_matched_then_ignored(
        self, edges: list[EnrichedCallEdge]
    ) -> None:
        suggestions = match_semantic_rows("project.x,project.y,Nothing", edges)

        assert [s.semantic for s in suggestions] == [
            default_suggestion(e).semantic for e in edges
        ]


class TestGenerateBatchSemantics:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "failure", [LLMError.request_failed("timeout"), TimeoutError("read timed out")]
    )
    async def test_given_failing_client_when_described_then_defaults(
        self, edges: list[EnrichedCallEdge], llm: ScriptedLLMClient, failure: Exception
    ) -> None:
        llm.script(failure)

        suggestions = await generate_batch_semantics(
            edges, llm, model="m", max_tokens=100, modules_by_id={}
        )

        assert [s.semantic for s in suggestions] == [
            "checkout uses orders",
            "checkout uses billing",
            "jobs uses orders",
        ]

    @pytest.mark.asyncio
    async def test_given_no_edges_when_described_then_no_request(
        self, llm: ScriptedLLMClient
    ) -> None:
        result = await generate_batch_semantics([], llm, model="m", max_tokens=1, modules_by_id={})

        assert result == []
        assert llm.requests == []

    @pytest.mark.asyncio
    async def test_prompt_lists_every_edge(
        self, edges: list[EnrichedCallEdge], llm: ScriptedLLMClient
    ) -> None:
        await generate_batch_semantics(edges, llm, model="m", max_tokens=100, modules_by_id={})

        (prompt,) = llm.prompts(SEMANTIC_SYSTEM_PROMPT)
        assert prompt.startswith("## Module Interactions to Describe (3)")
        assert "1. [BUSINESS] project.api.checkout -> project.orders (2 calls)" in prompt
        assert "Symbols: createOrder (function, 2 calls)" in prompt


class TestDescribeEdges:
    @pytest.mark.asyncio
    async def test_batches_run_in_order(
        self, edges: list[EnrichedCallEdge], llm: ScriptedLLMClient
    ) -> None:
        llm.script(
            "project.api.checkout,project.orders,Places the order",
            LLMError.bad_response("not csv"),
        )

        suggestions = await describe_edges(
            edges, llm, model="m", max_tokens=100, batch_size=2, modules_by_id={}
        )

        assert len(llm.requests) == 2
        assert [s.semantic for s in suggestions] == [
            "Places the order",
            "checkout uses billing",
            "jobs uses orders",
        ]

    @pytest.mark.asyncio
    async def test_given_bad_batch_size_when_described_then_value_error(
        self, edges: list[EnrichedCallEdge], llm: ScriptedLLMClient
    ) -> None:
        with pytest.raises(ValueError, match="batch_size"):
            await describe_edges(
                edges, llm, model="m", max_tokens=100, batch_size=0, modules_by_id={}
            )
