"""Tests for interaction persistence through IndexStore."""

from __future__ import annotations

from pathlib import Path

import pytest

from modlink.core.errors import StoreError
from modlink.index import (
    Confidence,
    Direction,
    IndexStore,
    InsertOutcome,
    InteractionPattern,
    InteractionSource,
)
from tests.support import IndexSeed


class TestOpen:
    def test_given_missing_file_when_open_then_store_error(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError) as exc_info:
            IndexStore.open(tmp_path / "missing.db")
        assert exc_info.value.details["path"] == str(tmp_path / "missing.db")

    def test_given_create_when_open_then_file_and_schema_created(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "index.db"

        store = IndexStore.open(path, create=True)

        assert path.exists()
        assert store.count_interactions() == 0


class TestInsertInteraction:
    """Insert is idempotent per ordered module pair."""

    def test_given_new_pair_when_insert_then_inserted_with_fields(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        # Given
        api = seed.module("project.api")
        orders = seed.module("project.orders")

        # When
        outcome = store.insert_interaction(
            api,
            orders,
            source=InteractionSource.LLM_INFERRED,
            weight=1,
            pattern=InteractionPattern.BUSINESS,
            symbols=["createOrder", "cancelOrder"],
            semantic="Checkout places orders",
            confidence=Confidence.HIGH,
        )

        # Then
        assert outcome is InsertOutcome.INSERTED
        (row,) = store.get_all_interactions()
        assert row.key == (api, orders)
        assert row.from_module_path == "project.api"
        assert row.to_module_path == "project.orders"
        assert row.symbols == ["createOrder", "cancelOrder"]
        assert row.source == "llm-inferred"
        assert row.confidence == "high"
        assert row.direction == "uni"

    def test_given_existing_pair_when_insert_then_already_exists_and_row_unchanged(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        store.insert_interaction(api, orders, source=InteractionSource.AST, semantic="first")

        outcome = store.insert_interaction(
            api, orders, source=InteractionSource.LLM_INFERRED, semantic="second"
        )

        assert outcome is InsertOutcome.ALREADY_EXISTS
        (row,) = store.get_all_interactions()
        assert row.semantic == "first"
        assert row.source == "ast"

    def test_given_reverse_pair_when_insert_then_both_kept(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        store.insert_interaction(api, orders, source=InteractionSource.AST)

        outcome = store.insert_interaction(orders, api, source=InteractionSource.AST)

        assert outcome is InsertOutcome.INSERTED
        assert store.get_interaction_keys() == {(api, orders), (orders, api)}

    def test_given_self_loop_when_insert_then_value_error(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")

        with pytest.raises(ValueError, match="Self-loop"):
            store.insert_interaction(api, api, source=InteractionSource.AST)
        assert store.count_interactions() == 0

    def test_given_negative_weight_when_insert_then_value_error(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")

        with pytest.raises(ValueError, match="weight"):
            store.insert_interaction(api, orders, source=InteractionSource.AST, weight=-1)

    def test_given_no_symbols_when_insert_then_empty_list(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        store.insert_interaction(api, orders, source=InteractionSource.AST)

        interaction = store.get_interaction_by_modules(api, orders)

        assert interaction is not None
        assert interaction.symbols is None
        assert interaction.get_symbols() == []


class TestQueries:
    """Read and delete helpers."""

    @pytest.fixture
    def three(self, store: IndexStore, seed: IndexSeed) -> tuple[int, int, int]:
        api = seed.module("project.api")
        orders = seed.module("project.orders")
        users = seed.module("project.users")
        seed.interaction(api, orders, weight=5)
        seed.interaction(
            api,
            users,
            source=InteractionSource.LLM_INFERRED,
            confidence=Confidence.MEDIUM,
        )
        seed.interaction(orders, users, pattern=InteractionPattern.UTILITY, weight=3)
        return api, orders, users

    def test_all_ordered_heaviest_first(
        self, store: IndexStore, three: tuple[int, int, int]
    ) -> None:
        assert [r.weight for r in store.get_all_interactions()] == [5, 3, 1]

    def test_filter_by_source_and_pattern(
        self, store: IndexStore, three: tuple[int, int, int]
    ) -> None:
        api, orders, users = three

        inferred = store.get_interactions_by_source(InteractionSource.LLM_INFERRED)
        utility = store.get_interactions_by_pattern(InteractionPattern.UTILITY)

        assert [r.key for r in inferred] == [(api, users)]
        assert [r.key for r in utility] == [(orders, users)]
        assert store.count_interactions(InteractionSource.AST) == 2

    def test_get_by_id_and_delete(self, store: IndexStore, three: tuple[int, int, int]) -> None:
        row = store.get_all_interactions()[0]

        assert store.get_interaction(row.id) == row
        assert store.delete_interaction(row.id) is True
        assert store.get_interaction(row.id) is None
        assert store.delete_interaction(row.id) is False

    def test_delete_many(self, store: IndexStore, three: tuple[int, int, int]) -> None:
        ids = [r.id for r in store.get_all_interactions()[:2]]

        assert store.delete_interactions(ids) == 2
        assert store.delete_interactions([]) == 0
        assert store.count_interactions() == 1

    def test_clear(self, store: IndexStore, three: tuple[int, int, int]) -> None:
        assert store.clear_interactions() == 3
        assert store.get_interaction_keys() == set()

    def test_remove_inferred_to_module_keeps_static_rows(
        self, store: IndexStore, three: tuple[int, int, int]
    ) -> None:
        api, orders, users = three

        removed = store.remove_inferred_interactions_to_module(users)

        assert removed == 1
        assert store.get_interaction_keys() == {(api, orders), (orders, users)}

    def test_update_overwrites_only_given_fields(
        self, store: IndexStore, three: tuple[int, int, int]
    ) -> None:
        api, orders, _ = three
        row = store.get_all_interactions()[0]

        updated = store.update_interaction(
            row.id, direction=Direction.BI, symbols=["createOrder", "cancelOrder"]
        )

        assert updated is True
        after = store.get_interaction(row.id)
        assert after is not None
        assert after.key == (api, orders)
        assert after.direction == "bi"
        assert after.symbols == ["createOrder", "cancelOrder"]
        assert after.pattern == row.pattern
        assert after.weight == 5

    def test_update_unknown_or_empty(self, store: IndexStore, three: tuple[int, int, int]) -> None:
        row = store.get_all_interactions()[0]

        assert store.update_interaction(999, semantic="x") is False
        assert store.update_interaction(row.id) is False


class TestModuleByPath:
    def test_found_and_missing(self, store: IndexStore, seed: IndexSeed) -> None:
        api = seed.module("project.api")

        found = store.get_module_by_path("project.api")

        assert found is not None
        assert found.id == api
        assert store.get_module_by_path("project.nope") is None
