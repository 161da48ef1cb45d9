"""Tests for module-level import evidence.

Covers:
- Majority file-to-module mapping
- Symbol-level pairs, import-only pairs and file-level fallback pairs
- Runtime edges (type-only imports excluded)
"""

from __future__ import annotations

from modlink.index import IndexStore
from modlink.index._internal.indexing import ImportGraph
from tests.support import IndexSeed


class TestSymbolLevelImports:
    """Resolved imported symbols lifted to module pairs."""

    def test_given_resolved_import_when_queried_then_path_and_symbols(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        # Given
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        seed.definition(api, "handler")
        create = seed.definition(orders, "createOrder")
        cancel = seed.definition(orders, "cancelOrder")
        seed.import_symbols(api, orders, [create, cancel])

        # Then
        assert store.has_module_import_path(api, orders)
        assert not store.has_module_import_path(orders, api)
        assert store.get_module_imported_symbols(api, orders) == ["createOrder", "cancelOrder"]

    def test_given_call_edge_when_import_only_pairs_then_excluded(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        """Pairs already explained by a call edge are not import-only."""
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        users = seed.module("project.users")
        handler = seed.definition(api, "handler")
        seed.call(handler, seed.definition(orders, "createOrder"))
        seed.import_symbols(api, users, [seed.definition(users, "User", kind="class")])

        pairs = store.get_import_only_module_pairs()

        assert [(p.from_module_id, p.to_module_id) for p in pairs] == [(api, users)]
        assert pairs[0].symbols == ["User"]
        assert pairs[0].weight == 1

    def test_given_type_only_import_when_queried_then_flagged_and_not_runtime(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        types = seed.module("project.types")
        seed.definition(api, "handler")
        order = seed.definition(types, "Order", kind="interface")
        seed.import_symbols(api, types, [order], type_only=True)

        (pair,) = store.get_import_only_module_pairs()

        assert pair.is_type_only
        assert store.get_module_import_edges() == []

    def test_given_mixed_type_and_runtime_imports_when_queried_then_runtime(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        seed.definition(api, "handler")
        order_type = seed.definition(orders, "Order", kind="type")
        create = seed.definition(orders, "createOrder")
        seed.import_symbols(api, orders, [order_type], type_only=True)
        seed.import_symbols(api, orders, [create])

        (pair,) = store.get_import_only_module_pairs()

        assert not pair.is_type_only
        assert store.get_module_import_edges() == [(api, orders)]


class TestFileLevelImports:
    """Imports whose symbols never resolved."""

    def test_given_unresolved_import_when_queried_then_file_level_pair(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        config = seed.module("project.config")
        seed.definition(api, "handler")
        seed.definition(config, "settings", kind="variable")
        seed.file_import(api, config)
        seed.file_import(api, config)

        (pair,) = store.get_file_level_import_module_pairs()

        assert (pair.from_module_id, pair.to_module_id) == (api, config)
        assert pair.import_count == 2
        assert not pair.is_type_only
        assert store.has_module_import_path(api, config)
        assert store.get_module_imported_symbols(api, config) == []

    def test_given_target_file_without_module_when_queried_then_ignored(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        """Files with no module-assigned definitions have no module to map to."""
        api = seed.module("project.api")
        empty = seed.module("project.empty")
        seed.definition(api, "handler")
        seed.file_import(api, empty)

        assert store.get_file_level_import_module_pairs() == []


class TestMajorityMapping:
    def test_given_file_shared_by_modules_when_mapped_then_majority_wins(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        """A file belongs to the module owning most of its definitions."""
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        shared = seed.module("project.shared")
        api_file = seed.file_of(api)
        seed.definition(api, "handler")
        seed.definition(api, "router")
        # One stray definition of ``shared`` lives in the api file
        seed.definition(shared, "helper", file_id=api_file)
        seed.import_symbols(api, orders, [seed.definition(orders, "createOrder")])

        assert store.has_module_import_path(api, orders)
        assert not store.has_module_import_path(shared, orders)

    def test_tie_goes_to_lowest_module_id(self, store: IndexStore, seed: IndexSeed) -> None:
        first = seed.module("project.first")
        second = seed.module("project.second")
        empty = seed.module("project.empty")
        shared_file = seed.file("project/shared.ts")
        seed.definition(second, "b", file_id=shared_file)
        seed.definition(first, "a", file_id=shared_file)

        with store.db.session() as session:
            graph = ImportGraph(session).load()

        assert graph.module_of_file(shared_file) == first
        assert graph.module_of_file(seed.file_of(empty)) is None
