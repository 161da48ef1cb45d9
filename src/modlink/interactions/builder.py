"""Deterministic interaction builder.

Turns static evidence into interactions without asking the LLM anything
(the call-edge semantics are produced beforehand by ``semantics``):

- call-graph edges -> ``ast`` interactions, pattern from edge classification
- extends/implements relationships -> ``ast`` business interactions
- symbol imports without a call edge -> ``ast-import`` interactions
- unresolved file imports -> ``ast-import`` fallback interactions

Any interaction touching a test module is tagged ``test-internal``.
Existing pairs are skipped, so running the builder twice changes nothing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from modlink.config.constants import IMPORT_SEMANTIC_NAMES, IMPORT_SYMBOLS_MAX
from modlink.index import InsertOutcome
from modlink.index.models import Direction, InteractionPattern, InteractionSource

if TYPE_CHECKING:
    from modlink.index import IndexStore
    from modlink.index.models import Confidence
    from modlink.interactions.models import InferenceRunState, InteractionSuggestion

log = structlog.get_logger(__name__)


@dataclass
class BuildCounts:
    inserted: int = 0
    skipped: int = 0
    test_internal: int = 0


def apply_test_override(
    pattern: InteractionPattern, from_module_id: int, to_module_id: int, test_module_ids: set[int]
) -> InteractionPattern:
    if from_module_id in test_module_ids or to_module_id in test_module_ids:
        return InteractionPattern.TEST_INTERNAL
    return pattern


def import_semantic(symbols: Sequence[str], *, is_type_only: bool) -> str:
    """``Type/interface dependency (A, B, C...)`` or ``Imports A, B, C (+N more)``."""
    shown = ", ".join(symbols[:IMPORT_SEMANTIC_NAMES])
    extra = len(symbols) - IMPORT_SEMANTIC_NAMES
    if is_type_only:
        return f"Type/interface dependency ({shown}{'...' if extra > 0 else ''})"
    return f"Imports {shown}{f' (+{extra} more)' if extra > 0 else ''}"


def file_level_semantic(*, is_type_only: bool) -> str:
    if is_type_only:
        return "Type dependency (file-level import)"
    return "File-level import dependency"


def inheritance_semantic(parents: Sequence[str]) -> str:
    return f"Extends/implements {', '.join(parents)}"


class InteractionBuilder:
    """Persists deterministic interactions and records them in the run state.

    With ``dry_run`` nothing is written; rows are counted as inserted unless
    the run state already holds the pair.
    """

    def __init__(
        self,
        store: IndexStore,
        state: InferenceRunState,
        *,
        test_module_ids: set[int],
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._state = state
        self._test_ids = test_module_ids
        self._dry_run = dry_run

    def persist(
        self,
        from_module_id: int,
        to_module_id: int,
        *,
        source: InteractionSource,
        weight: int = 1,
        pattern: InteractionPattern | None = None,
        symbols: Iterable[str] | None = None,
        semantic: str | None = None,
        confidence: Confidence | None = None,
    ) -> bool:
        """Write one interaction. Returns False when the pair already existed."""
        if self._dry_run:
            if self._state.has(from_module_id, to_module_id):
                return False
            self._state.mark(from_module_id, to_module_id)
            return True

        outcome = self._store.insert_interaction(
            from_module_id,
            to_module_id,
            source=source,
            weight=weight,
            pattern=pattern,
            symbols=symbols,
            semantic=semantic,
            confidence=confidence,
            direction=Direction.UNI,
        )
        self._state.mark(from_module_id, to_module_id)
        return outcome is InsertOutcome.INSERTED

    def _pattern(self, pattern: InteractionPattern, from_id: int, to_id: int) -> InteractionPattern:
        return apply_test_override(pattern, from_id, to_id, self._test_ids)

    def _tally(self, counts: BuildCounts, inserted: bool, pattern: InteractionPattern) -> None:
        if not inserted:
            counts.skipped += 1
            return
        counts.inserted += 1
        if pattern is InteractionPattern.TEST_INTERNAL:
            counts.test_internal += 1

    # -----------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------

    def persist_suggestions(self, suggestions: Iterable[InteractionSuggestion]) -> BuildCounts:
        """Step 1: call-graph edges with their semantics."""
        counts = BuildCounts()
        for s in suggestions:
            pattern = self._pattern(s.pattern, s.from_module_id, s.to_module_id)
            inserted = self.persist(
                s.from_module_id,
                s.to_module_id,
                source=InteractionSource.AST,
                weight=s.weight,
                pattern=pattern,
                symbols=s.symbols,
                semantic=s.semantic,
            )
            if not inserted:
                log.debug(
                    "interaction_skipped_duplicate",
                    from_module=s.from_module_path,
                    to_module=s.to_module_path,
                )
            self._tally(counts, inserted, pattern)
        return counts

    def sync_inheritance(self) -> BuildCounts:
        """Step 1b: cross-module extends/implements relationships."""
        counts = BuildCounts()
        for pair in self._store.get_inheritance_pairs():
            pattern = self._pattern(
                InteractionPattern.BUSINESS, pair.from_module_id, pair.to_module_id
            )
            inserted = self.persist(
                pair.from_module_id,
                pair.to_module_id,
                source=InteractionSource.AST,
                weight=1,
                pattern=pattern,
                symbols=pair.symbols,
                semantic=inheritance_semantic(pair.symbols),
            )
            self._tally(counts, inserted, pattern)
        return counts

    def build_import_interactions(self) -> BuildCounts:
        """Step 2: symbol-level imports that have no call edge."""
        counts = BuildCounts()
        for pair in self._store.get_import_only_module_pairs():
            pattern = self._pattern(
                InteractionPattern.BUSINESS, pair.from_module_id, pair.to_module_id
            )
            inserted = self.persist(
                pair.from_module_id,
                pair.to_module_id,
                source=InteractionSource.AST_IMPORT,
                weight=pair.weight,
                pattern=pattern,
                symbols=pair.symbols[:IMPORT_SYMBOLS_MAX] or None,
                semantic=import_semantic(pair.symbols, is_type_only=pair.is_type_only),
            )
            self._tally(counts, inserted, pattern)
        return counts

    def build_file_level_interactions(self) -> BuildCounts:
        """Step 2b: imports whose symbols never resolved."""
        counts = BuildCounts()
        for pair in self._store.get_file_level_import_module_pairs():
            pattern = self._pattern(
                InteractionPattern.BUSINESS, pair.from_module_id, pair.to_module_id
            )
            inserted = self.persist(
                pair.from_module_id,
                pair.to_module_id,
                source=InteractionSource.AST_IMPORT,
                weight=pair.import_count,
                pattern=pattern,
                semantic=file_level_semantic(is_type_only=pair.is_type_only),
            )
            self._tally(counts, inserted, pattern)
        return counts
