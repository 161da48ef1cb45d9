"""Module-level call graph derived from usages.

A call is a usage in a call context (``call_expression`` and friends) of a
symbol that resolves to a definition, where the usage line falls inside the
calling definition's line range. The symbol is either bound in the caller's
own file or imported by it. Calls inside a single module are dropped.

Symbol-level calls are aggregated per ordered module pair and classified:

- ``utility``: high-frequency (weight > 10), at least 3 distinct callers,
  more than 3 calls per symbol on average, and no class is called.
- ``business``: everything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import text

from modlink.config.constants import (
    CALL_CONTEXTS,
    HIGH_FREQUENCY_WEIGHT,
    UTILITY_MIN_AVG_CALLS,
    UTILITY_MIN_CALLERS,
)
from modlink.index.models import InteractionPattern

if TYPE_CHECKING:
    from sqlmodel import Session


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


@dataclass
class CalledSymbol:
    """A target-side definition called across a module edge."""

    name: str
    kind: str
    call_count: int


@dataclass
class ModuleCallEdge:
    """Unclassified module-to-module call edge."""

    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    weight: int


@dataclass
class EnrichedCallEdge:
    """Module call edge with per-symbol detail and a pattern classification."""

    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    weight: int
    called_symbols: list[CalledSymbol] = field(default_factory=list)
    distinct_callers: int = 0
    avg_calls_per_symbol: float = 0.0
    edge_pattern: InteractionPattern = InteractionPattern.BUSINESS

    @property
    def is_high_frequency(self) -> bool:
        return self.weight > HIGH_FREQUENCY_WEIGHT

    @property
    def symbol_names(self) -> list[str]:
        return [s.name for s in self.called_symbols]


def classify_edge(
    weight: int, distinct_callers: int, called_symbols: list[CalledSymbol]
) -> InteractionPattern:
    """Classify a module edge as utility or business."""
    avg_calls = weight / len(called_symbols) if called_symbols else 0.0
    has_class_call = any(s.kind == "class" for s in called_symbols)
    is_utility = (
        weight > HIGH_FREQUENCY_WEIGHT
        and distinct_callers >= UTILITY_MIN_CALLERS
        and avg_calls > UTILITY_MIN_AVG_CALLS
        and not has_class_call
    )
    return InteractionPattern.UTILITY if is_utility else InteractionPattern.BUSINESS


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_CONTEXTS_SQL = ", ".join(f"'{c}'" for c in CALL_CONTEXTS)

# One row per (module pair, called definition, caller definition). The two
# branches differ only in how the symbol is bound: same-file vs imported.
_SYMBOL_CALLS_SQL = f"""
    SELECT
        from_mm.module_id AS from_module_id,
        to_mm.module_id AS to_module_id,
        from_m.full_path AS from_module_path,
        to_m.full_path AS to_module_path,
        to_d.name AS symbol_name,
        to_d.kind AS symbol_kind,
        from_d.id AS caller_id,
        COUNT(*) AS call_count
    FROM definitions from_d
    JOIN module_members from_mm ON from_mm.definition_id = from_d.id
    JOIN modules from_m ON from_m.id = from_mm.module_id
    JOIN symbols s ON s.file_id = from_d.file_id AND s.definition_id IS NOT NULL
    JOIN definitions to_d ON to_d.id = s.definition_id
    JOIN module_members to_mm ON to_mm.definition_id = to_d.id
    JOIN modules to_m ON to_m.id = to_mm.module_id
    JOIN usages u ON u.symbol_id = s.id
    WHERE u.context IN ({_CONTEXTS_SQL})
      AND from_d.line <= u.line AND u.line <= from_d.end_line
      AND s.definition_id != from_d.id
      AND from_mm.module_id != to_mm.module_id
    GROUP BY from_mm.module_id, to_mm.module_id, to_d.id, from_d.id
    UNION ALL
    SELECT
        from_mm.module_id AS from_module_id,
        to_mm.module_id AS to_module_id,
        from_m.full_path AS from_module_path,
        to_m.full_path AS to_module_path,
        to_d.name AS symbol_name,
        to_d.kind AS symbol_kind,
        from_d.id AS caller_id,
        COUNT(*) AS call_count
    FROM definitions from_d
    JOIN module_members from_mm ON from_mm.definition_id = from_d.id
    JOIN modules from_m ON from_m.id = from_mm.module_id
    JOIN imports i ON i.from_file_id = from_d.file_id
    JOIN symbols s ON s.reference_id = i.id AND s.definition_id IS NOT NULL
    JOIN definitions to_d ON to_d.id = s.definition_id
    JOIN module_members to_mm ON to_mm.definition_id = to_d.id
    JOIN modules to_m ON to_m.id = to_mm.module_id
    JOIN usages u ON u.symbol_id = s.id
    WHERE u.context IN ({_CONTEXTS_SQL})
      AND from_d.line <= u.line AND u.line <= from_d.end_line
      AND s.definition_id != from_d.id
      AND from_mm.module_id != to_mm.module_id
    GROUP BY from_mm.module_id, to_mm.module_id, to_d.id, from_d.id
"""


# ---------------------------------------------------------------------------
# CallGraphQueries
# ---------------------------------------------------------------------------


@dataclass
class _EdgeAccumulator:
    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    weight: int = 0
    symbols: dict[str, CalledSymbol] = field(default_factory=dict)
    callers: set[int] = field(default_factory=set)


class CallGraphQueries:
    """Aggregates symbol-level calls into module-level edges."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_enriched_module_call_graph(self) -> list[EnrichedCallEdge]:
        """Classified module edges, heaviest first."""
        edges: dict[tuple[int, int], _EdgeAccumulator] = {}

        for row in self._session.execute(text(_SYMBOL_CALLS_SQL)).mappings():
            key = (row["from_module_id"], row["to_module_id"])
            acc = edges.get(key)
            if acc is None:
                acc = _EdgeAccumulator(
                    from_module_id=row["from_module_id"],
                    to_module_id=row["to_module_id"],
                    from_module_path=row["from_module_path"],
                    to_module_path=row["to_module_path"],
                )
                edges[key] = acc

            acc.weight += row["call_count"]
            acc.callers.add(row["caller_id"])
            existing = acc.symbols.get(row["symbol_name"])
            if existing is None:
                acc.symbols[row["symbol_name"]] = CalledSymbol(
                    name=row["symbol_name"],
                    kind=row["symbol_kind"],
                    call_count=row["call_count"],
                )
            else:
                existing.call_count += row["call_count"]

        result = [self._finish(acc) for acc in edges.values()]
        result.sort(key=lambda e: (-e.weight, e.from_module_path, e.to_module_path))
        return result

    def get_module_call_graph(self) -> list[ModuleCallEdge]:
        """Unclassified module edges, heaviest first."""
        return [
            ModuleCallEdge(
                from_module_id=e.from_module_id,
                to_module_id=e.to_module_id,
                from_module_path=e.from_module_path,
                to_module_path=e.to_module_path,
                weight=e.weight,
            )
            for e in self.get_enriched_module_call_graph()
        ]

    @staticmethod
    def _finish(acc: _EdgeAccumulator) -> EnrichedCallEdge:
        called = sorted(acc.symbols.values(), key=lambda s: (-s.call_count, s.name))
        avg = acc.weight / len(called) if called else 0.0
        return EnrichedCallEdge(
            from_module_id=acc.from_module_id,
            to_module_id=acc.to_module_id,
            from_module_path=acc.from_module_path,
            to_module_path=acc.to_module_path,
            weight=acc.weight,
            called_symbols=called,
            distinct_callers=len(acc.callers),
            avg_calls_per_symbol=avg,
            edge_pattern=classify_edge(acc.weight, len(acc.callers), called),
        )
