"""Relationship coverage and interaction analysis.

Coverage answers: of the symbol-level relationships that cross a module
boundary, how many are backed by an interaction between the two modules?

Relationship buckets:

- ``covered``: modules differ and ``from -> to`` interaction exists
- ``same_module``: both definitions in one module
- ``no_call_edge``: modules differ, no interaction
- ``orphaned``: at least one definition has no module
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import text

from modlink.index.models import InteractionSource, RelationshipType

if TYPE_CHECKING:
    from sqlmodel import Session


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


@dataclass
class RelationshipCoverage:
    total_relationships: int
    cross_module_relationships: int
    same_module_count: int
    relationships_contributing_to_interactions: int
    coverage_percent: float
    orphaned_count: int


@dataclass
class CoverageBreakdown:
    covered: int = 0
    same_module: int = 0
    no_call_edge: int = 0
    orphaned: int = 0
    by_type: dict[str, int] = field(
        default_factory=lambda: {t.value: 0 for t in RelationshipType}
    )


@dataclass
class UncoveredPair:
    """Module pair with cross-module relationships but no interaction."""

    from_module_id: int
    to_module_id: int
    from_path: str
    to_path: str
    relationship_count: int


@dataclass
class RelationshipDetail:
    from_name: str
    from_kind: str
    to_name: str
    to_kind: str
    semantic: str
    relationship_type: str


@dataclass
class InheritancePair:
    """Cross-module extends/implements edge with the parent names involved."""

    from_module_id: int
    to_module_id: int
    from_path: str
    to_path: str
    symbols: list[str] = field(default_factory=list)


@dataclass
class FanInAnomaly:
    module_id: int
    module_path: str
    llm_fan_in: int
    ast_fan_in: int


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_STATIC_SOURCES_SQL = ", ".join(f"'{s.value}'" for s in InteractionSource.static_sources())

_COUNTS_SQL = """
    SELECT
        COUNT(*) AS total,
        SUM(CASE WHEN mm1.module_id IS NOT NULL AND mm2.module_id IS NOT NULL
                 AND mm1.module_id != mm2.module_id THEN 1 ELSE 0 END) AS cross_module,
        SUM(CASE WHEN mm1.module_id IS NOT NULL AND mm1.module_id = mm2.module_id
                 THEN 1 ELSE 0 END) AS same_module,
        SUM(CASE WHEN mm1.module_id IS NOT NULL AND mm2.module_id IS NOT NULL
                 THEN 1 ELSE 0 END) AS with_modules
    FROM relationship_annotations ra
    LEFT JOIN module_members mm1 ON ra.from_definition_id = mm1.definition_id
    LEFT JOIN module_members mm2 ON ra.to_definition_id = mm2.definition_id
"""

_CONTRIBUTING_SQL = """
    SELECT COUNT(DISTINCT ra.id)
    FROM relationship_annotations ra
    JOIN module_members mm1 ON ra.from_definition_id = mm1.definition_id
    JOIN module_members mm2 ON ra.to_definition_id = mm2.definition_id
    JOIN interactions i
      ON i.from_module_id = mm1.module_id AND i.to_module_id = mm2.module_id
    WHERE mm1.module_id != mm2.module_id
"""

_BREAKDOWN_SQL = """
    SELECT
        ra.relationship_type,
        CASE
            WHEN mm1.module_id IS NULL OR mm2.module_id IS NULL THEN 'orphaned'
            WHEN mm1.module_id = mm2.module_id THEN 'same_module'
            WHEN EXISTS (
                SELECT 1 FROM interactions i
                WHERE i.from_module_id = mm1.module_id
                  AND i.to_module_id = mm2.module_id
            ) THEN 'covered'
            ELSE 'no_call_edge'
        END AS reason,
        COUNT(*) AS n
    FROM relationship_annotations ra
    LEFT JOIN module_members mm1 ON ra.from_definition_id = mm1.definition_id
    LEFT JOIN module_members mm2 ON ra.to_definition_id = mm2.definition_id
    GROUP BY ra.relationship_type, reason
"""

_UNCOVERED_SQL = """
    SELECT mm1.module_id, mm2.module_id, m1.full_path, m2.full_path, COUNT(*) AS n
    FROM relationship_annotations ra
    JOIN module_members mm1 ON ra.from_definition_id = mm1.definition_id
    JOIN module_members mm2 ON ra.to_definition_id = mm2.definition_id
    JOIN modules m1 ON mm1.module_id = m1.id
    JOIN modules m2 ON mm2.module_id = m2.id
    WHERE mm1.module_id != mm2.module_id
      AND NOT EXISTS (
        SELECT 1 FROM interactions i
        WHERE i.from_module_id = mm1.module_id AND i.to_module_id = mm2.module_id
      )
    GROUP BY mm1.module_id, mm2.module_id
    ORDER BY n DESC, m1.full_path, m2.full_path
"""

_DETAILS_SQL = """
    SELECT from_d.name, from_d.kind, to_d.name, to_d.kind, ra.semantic, ra.relationship_type
    FROM relationship_annotations ra
    JOIN module_members from_mm ON ra.from_definition_id = from_mm.definition_id
    JOIN module_members to_mm ON ra.to_definition_id = to_mm.definition_id
    JOIN definitions from_d ON ra.from_definition_id = from_d.id
    JOIN definitions to_d ON ra.to_definition_id = to_d.id
    WHERE from_mm.module_id = :from_id AND to_mm.module_id = :to_id
    ORDER BY ra.relationship_type, from_d.name, to_d.name
"""

_INHERITANCE_SQL = """
    SELECT mm1.module_id, mm2.module_id, m1.full_path, m2.full_path, to_d.name
    FROM relationship_annotations ra
    JOIN module_members mm1 ON ra.from_definition_id = mm1.definition_id
    JOIN module_members mm2 ON ra.to_definition_id = mm2.definition_id
    JOIN modules m1 ON mm1.module_id = m1.id
    JOIN modules m2 ON mm2.module_id = m2.id
    JOIN definitions to_d ON ra.to_definition_id = to_d.id
    WHERE ra.relationship_type IN ('extends', 'implements')
      AND mm1.module_id != mm2.module_id
    ORDER BY m1.full_path, m2.full_path, to_d.name
"""

_REVERSE_STATIC_SQL = f"""
    SELECT EXISTS (
        SELECT 1 FROM interactions
        WHERE from_module_id = :to_id AND to_module_id = :from_id
          AND source IN ({_STATIC_SOURCES_SQL})
    )
"""

_FAN_IN_SQL = f"""
    SELECT
        i.to_module_id,
        m.full_path,
        SUM(CASE WHEN i.source = 'llm-inferred' THEN 1 ELSE 0 END) AS llm_fan_in,
        SUM(CASE WHEN i.source IN ({_STATIC_SOURCES_SQL}) THEN 1 ELSE 0 END) AS ast_fan_in
    FROM interactions i
    JOIN modules m ON m.id = i.to_module_id
    GROUP BY i.to_module_id
"""


# ---------------------------------------------------------------------------
# RelationshipAnalysis
# ---------------------------------------------------------------------------


class RelationshipAnalysis:
    """Coverage and anomaly queries over relationships and interactions."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_relationship_coverage(self) -> RelationshipCoverage:
        row = self._session.execute(text(_COUNTS_SQL)).one()
        total = int(row.total or 0)
        cross = int(row.cross_module or 0)
        same = int(row.same_module or 0)
        with_modules = int(row.with_modules or 0)
        contributing = int(self._session.execute(text(_CONTRIBUTING_SQL)).scalar_one())

        return RelationshipCoverage(
            total_relationships=total,
            cross_module_relationships=cross,
            same_module_count=same,
            relationships_contributing_to_interactions=contributing,
            coverage_percent=(contributing / cross) * 100 if cross > 0 else 100.0,
            orphaned_count=total - with_modules,
        )

    def get_relationship_coverage_breakdown(self) -> CoverageBreakdown:
        result = CoverageBreakdown()
        for rel_type, reason, n in self._session.execute(text(_BREAKDOWN_SQL)):
            setattr(result, reason, getattr(result, reason) + n)
            # Orphans have no module pair to classify
            if reason != "orphaned" and rel_type in result.by_type:
                result.by_type[rel_type] += n
        return result

    def get_uncovered_module_pairs(self) -> list[UncoveredPair]:
        """Uncovered cross-module pairs, most relationships first."""
        return [
            UncoveredPair(
                from_module_id=from_id,
                to_module_id=to_id,
                from_path=from_path,
                to_path=to_path,
                relationship_count=n,
            )
            for from_id, to_id, from_path, to_path, n in self._session.execute(
                text(_UNCOVERED_SQL)
            )
        ]

    def has_reverse_interaction(self, from_module_id: int, to_module_id: int) -> bool:
        """True when a static (ast/ast-import) interaction runs ``to -> from``."""
        return bool(
            self._session.execute(
                text(_REVERSE_STATIC_SQL),
                {"from_id": from_module_id, "to_id": to_module_id},
            ).scalar_one()
        )

    def get_relationship_details_for_pair(
        self, from_module_id: int, to_module_id: int
    ) -> list[RelationshipDetail]:
        return [
            RelationshipDetail(
                from_name=from_name,
                from_kind=from_kind,
                to_name=to_name,
                to_kind=to_kind,
                semantic=semantic or "",
                relationship_type=rel_type,
            )
            for from_name, from_kind, to_name, to_kind, semantic, rel_type in self._session.execute(
                text(_DETAILS_SQL), {"from_id": from_module_id, "to_id": to_module_id}
            )
        ]

    def get_relationship_symbols_for_pair(
        self, from_module_id: int, to_module_id: int
    ) -> list[str]:
        """Distinct target-side names, first-seen order."""
        details = self.get_relationship_details_for_pair(from_module_id, to_module_id)
        return list(dict.fromkeys(d.to_name for d in details))

    def get_inheritance_pairs(self) -> list[InheritancePair]:
        pairs: dict[tuple[int, int], InheritancePair] = {}
        for from_id, to_id, from_path, to_path, name in self._session.execute(
            text(_INHERITANCE_SQL)
        ):
            pair = pairs.setdefault(
                (from_id, to_id),
                InheritancePair(
                    from_module_id=from_id,
                    to_module_id=to_id,
                    from_path=from_path,
                    to_path=to_path,
                ),
            )
            if name not in pair.symbols:
                pair.symbols.append(name)
        return list(pairs.values())

    def detect_fan_in_anomalies(
        self,
        *,
        iqr_multiplier: float = 3.0,
        min_fan_in: int = 8,
        max_ast_fan_in: int = 0,
    ) -> list[FanInAnomaly]:
        """Targets with outlying llm-inferred fan-in and little static support.

        The outlier test is Tukey's fence ``Q3 + k * IQR`` over the
        llm-inferred fan-in of every target that has any. Quartiles are
        taken by index (``floor(n * q)``) over the sorted values.
        """
        rows = [
            (module_id, path, int(llm or 0), int(ast or 0))
            for module_id, path, llm, ast in self._session.execute(text(_FAN_IN_SQL))
        ]
        llm_rows = [r for r in rows if r[2] > 0]
        if not llm_rows:
            return []

        values = sorted(r[2] for r in llm_rows)
        n = len(values)
        q1 = values[int(n * 0.25)]
        q3 = values[int(n * 0.75)]
        fence = q3 + iqr_multiplier * (q3 - q1)

        return [
            FanInAnomaly(module_id=module_id, module_path=path, llm_fan_in=llm, ast_fan_in=ast)
            for module_id, path, llm, ast in sorted(llm_rows, key=lambda r: (-r[2], r[1]))
            if llm > fence and llm >= min_fan_in and ast <= max_ast_fan_in
        ]
