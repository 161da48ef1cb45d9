"""Tests for the module-level call graph and edge classification."""

from __future__ import annotations

import pytest

from modlink.index import CalledSymbol, IndexStore, InteractionPattern, Usage
from modlink.index._internal.indexing import classify_edge
from tests.support import IndexSeed


class TestClassifyEdge:
    """Utility vs business classification."""

    def test_given_heavy_fan_in_when_classified_then_utility(self) -> None:
        symbols = [CalledSymbol(name="log", kind="function", call_count=12)]

        assert classify_edge(12, 3, symbols) is InteractionPattern.UTILITY

    @pytest.mark.parametrize(
        ("weight", "callers", "symbols"),
        [
            # Not high-frequency
            (10, 5, [CalledSymbol("log", "function", 10)]),
            # Too few distinct callers
            (20, 2, [CalledSymbol("log", "function", 20)]),
            # Average calls per symbol not above 3
            (12, 4, [CalledSymbol(f"f{i}", "function", 3) for i in range(4)]),
            # A class is called
            (30, 5, [CalledSymbol("Client", "class", 30)]),
        ],
    )
    def test_given_missing_utility_condition_when_classified_then_business(
        self, weight: int, callers: int, symbols: list[CalledSymbol]
    ) -> None:
        assert classify_edge(weight, callers, symbols) is InteractionPattern.BUSINESS

    def test_given_no_symbols_when_classified_then_business(self) -> None:
        assert classify_edge(50, 10, []) is InteractionPattern.BUSINESS


class TestEnrichedCallGraph:
    """Call edges aggregated from usages."""

    def test_given_cross_module_calls_when_queried_then_one_edge_with_symbols(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        # Given
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        handler = seed.definition(api, "handleCheckout")
        create = seed.definition(orders, "createOrder")
        cancel = seed.definition(orders, "cancelOrder")
        seed.call(handler, create, times=2)
        seed.call(handler, cancel)

        # When
        edges = store.get_enriched_module_call_graph()

        # Then
        assert len(edges) == 1
        edge = edges[0]
        assert (edge.from_module_id, edge.to_module_id) == (api, orders)
        assert edge.weight == 3
        assert edge.symbol_names == ["createOrder", "cancelOrder"]
        assert edge.distinct_callers == 1
        assert edge.edge_pattern is InteractionPattern.BUSINESS

    def test_given_same_module_call_when_queried_then_dropped(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        orders = seed.module("project.orders")
        a = seed.definition(orders, "createOrder")
        b = seed.definition(orders, "validateOrder")
        seed.call(a, b)

        assert store.get_enriched_module_call_graph() == []

    def test_given_many_callers_of_helper_when_queried_then_utility(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        utils = seed.module("project.utils")
        log = seed.definition(utils, "log")
        for name in ("a", "b", "c"):
            seed.call(seed.definition(api, name), log, times=4)

        (edge,) = store.get_enriched_module_call_graph()

        assert edge.weight == 12
        assert edge.distinct_callers == 3
        assert edge.is_high_frequency
        assert edge.edge_pattern is InteractionPattern.UTILITY

    def test_edges_ordered_heaviest_first(self, store: IndexStore, seed: IndexSeed) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        users = seed.module("project.users")
        handler = seed.definition(api, "handler")
        seed.call(handler, seed.definition(orders, "createOrder"))
        seed.call(handler, seed.definition(users, "getUser"), times=5)

        edges = store.get_module_call_graph()

        assert [e.to_module_path for e in edges] == ["project.users", "project.orders"]
        assert [e.weight for e in edges] == [5, 1]

    def test_given_non_call_usage_when_queried_then_ignored(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        """Only call contexts count; a plain reference is not an edge."""
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        seed.definition(api, "handler")
        create = seed.definition(orders, "createOrder")
        (symbol_id,) = seed.import_symbols(api, orders, [create])
        with store.db.session() as session:
            session.add(Usage(symbol_id=symbol_id, line=2, context="identifier"))
            session.commit()

        assert store.get_module_call_graph() == []
