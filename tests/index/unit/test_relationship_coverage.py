"""Tests for relationship coverage, reverse lookups and fan-in anomalies."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from modlink.index import (
    Definition,
    IndexStore,
    InteractionSource,
    RelationshipType,
)
from tests.support import IndexSeed


@dataclass
class CoverageIndex:
    a: int
    b: int
    c: int


@pytest.fixture
def coverage_index(store: IndexStore, seed: IndexSeed) -> CoverageIndex:
    """Four relationships: covered, uncovered, same-module and orphaned."""
    a = seed.module("project.api")
    b = seed.module("project.orders")
    c = seed.module("project.billing")
    a1 = seed.definition(a, "checkout")
    b1 = seed.definition(b, "createOrder")
    b2 = seed.definition(b, "validateOrder")
    c1 = seed.definition(c, "charge")
    with store.db.session() as session:
        orphan = Definition(
            file_id=seed.file_of(a), name="loose", kind="function", line=90, end_line=95
        )
        session.add(orphan)
        session.commit()
        session.refresh(orphan)
        assert orphan.id is not None
        orphan_id = orphan.id

    seed.relationship(a1, b1, semantic="checkout creates the order")
    seed.relationship(a1, c1, semantic="checkout charges the card")
    seed.relationship(b1, b2)
    seed.relationship(a1, orphan_id)
    seed.interaction(a, b)
    return CoverageIndex(a=a, b=b, c=c)


class TestRelationshipCoverage:
    """Coverage counts and percent."""

    def test_counts(self, store: IndexStore, coverage_index: CoverageIndex) -> None:
        coverage = store.get_relationship_coverage()

        assert coverage.total_relationships == 4
        assert coverage.cross_module_relationships == 2
        assert coverage.same_module_count == 1
        assert coverage.relationships_contributing_to_interactions == 1
        assert coverage.coverage_percent == 50.0
        assert coverage.orphaned_count == 1

    def test_breakdown(self, store: IndexStore, coverage_index: CoverageIndex) -> None:
        breakdown = store.get_relationship_coverage_breakdown()

        assert breakdown.covered == 1
        assert breakdown.same_module == 1
        assert breakdown.no_call_edge == 1
        assert breakdown.orphaned == 1
        assert breakdown.by_type == {"uses": 3, "extends": 0, "implements": 0}

    def test_given_no_relationships_when_measured_then_fully_covered(
        self, store: IndexStore
    ) -> None:
        coverage = store.get_relationship_coverage()

        assert coverage.total_relationships == 0
        assert coverage.coverage_percent == 100.0

    def test_given_reverse_interaction_only_when_measured_then_not_covered(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        """Coverage is directional: ``to -> from`` does not cover ``from -> to``."""
        a = seed.module("project.api")
        b = seed.module("project.orders")
        seed.relationship(seed.definition(a, "checkout"), seed.definition(b, "createOrder"))
        seed.interaction(b, a)

        assert store.get_relationship_coverage().coverage_percent == 0.0

    def test_uncovered_pairs(self, store: IndexStore, coverage_index: CoverageIndex) -> None:
        (pair,) = store.get_uncovered_module_pairs()

        assert (pair.from_module_id, pair.to_module_id) == (coverage_index.a, coverage_index.c)
        assert pair.from_path == "project.api"
        assert pair.to_path == "project.billing"
        assert pair.relationship_count == 1


class TestPairEvidence:
    def test_relationship_details_for_pair(
        self, store: IndexStore, coverage_index: CoverageIndex
    ) -> None:
        (detail,) = store.get_relationship_details_for_pair(coverage_index.a, coverage_index.b)

        assert (detail.from_name, detail.to_name) == ("checkout", "createOrder")
        assert detail.semantic == "checkout creates the order"
        assert detail.relationship_type == "uses"
        assert store.get_relationship_symbols_for_pair(coverage_index.a, coverage_index.b) == [
            "createOrder"
        ]

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            (InteractionSource.AST, True),
            (InteractionSource.AST_IMPORT, True),
            (InteractionSource.LLM_INFERRED, False),
        ],
    )
    def test_reverse_interaction_counts_static_sources_only(
        self,
        store: IndexStore,
        seed: IndexSeed,
        source: InteractionSource,
        expected: bool,
    ) -> None:
        a = seed.module("project.api")
        b = seed.module("project.orders")
        seed.interaction(b, a, source=source)

        assert store.has_reverse_interaction(a, b) is expected
        assert store.has_reverse_interaction(b, a) is False

    def test_inheritance_pairs_group_parent_names(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        a = seed.module("project.api")
        b = seed.module("project.base")
        child = seed.definition(a, "OrderController", kind="class")
        other = seed.definition(a, "UserController", kind="class")
        base = seed.definition(b, "BaseController", kind="class")
        iface = seed.definition(b, "Handler", kind="interface")
        seed.relationship(child, base, relationship_type=RelationshipType.EXTENDS)
        seed.relationship(other, base, relationship_type=RelationshipType.EXTENDS)
        seed.relationship(child, iface, relationship_type=RelationshipType.IMPLEMENTS)

        (pair,) = store.get_inheritance_pairs()

        assert (pair.from_module_id, pair.to_module_id) == (a, b)
        assert pair.symbols == ["BaseController", "Handler"]


class TestFanInAnomalies:
    """Tukey-fence detection over llm-inferred fan-in."""

    def _star(self, seed: IndexSeed, fan_in: int) -> int:
        """``fan_in`` sources point at one hub; four quiet targets get one caller each."""
        hub = seed.module("project.backend.hub")
        sources = [seed.module(f"project.frontend.s{i}") for i in range(fan_in)]
        for source in sources:
            seed.interaction(source, hub, source=InteractionSource.LLM_INFERRED)
        for i in range(4):
            quiet = seed.module(f"project.backend.q{i}")
            seed.interaction(sources[i], quiet, source=InteractionSource.LLM_INFERRED)
        return hub

    def test_given_outlier_hub_when_detected_then_flagged(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        hub = self._star(seed, 10)

        (anomaly,) = store.detect_fan_in_anomalies()

        assert anomaly.module_id == hub
        assert anomaly.llm_fan_in == 10
        assert anomaly.ast_fan_in == 0

    def test_given_fan_in_below_minimum_when_detected_then_ignored(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        self._star(seed, 7)

        assert store.detect_fan_in_anomalies() == []

    def test_given_static_support_when_detected_then_ignored(
        self, store: IndexStore, seed: IndexSeed
    ) -> None:
        hub = self._star(seed, 10)
        caller = seed.module("project.backend.caller")
        seed.interaction(caller, hub, source=InteractionSource.AST)

        assert store.detect_fan_in_anomalies() == []
        assert len(store.detect_fan_in_anomalies(max_ast_fan_in=1)) == 1

    def test_given_no_inferred_rows_when_detected_then_empty(self, store: IndexStore) -> None:
        assert store.detect_fan_in_anomalies() == []
