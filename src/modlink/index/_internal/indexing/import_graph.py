"""Import graph - module-level views over file imports.

Files are mapped to modules by majority: a file belongs to the module that
owns most of its definitions (ties go to the lowest module id). Files with
no module-assigned definitions are ignored.

Two kinds of evidence are lifted to module pairs:

1. Symbol-level: an imported symbol resolved to a definition. The pair is
   ``(module of importing file, module owning the definition)``.
2. File-level: an import whose target file is known, but none of whose
   symbols resolved. The pair is ``(module of importing file, module of
   target file)``.

Provides:

- ``has_path(from, to)`` - any import evidence from one module to another
- ``imported_symbols(from, to)`` - resolved symbol names, first-seen order
- ``runtime_edges()`` - undirected connectivity input for process grouping
- ``import_only_pairs(call_pairs)`` - symbol-level pairs without a call edge
- ``file_level_pairs()`` - file-level fallback pairs

The snapshot is read once and cached; the index is read-only during a run.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlmodel import Session


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


@dataclass
class ImportModulePair:
    """Module pair linked by resolved symbol imports."""

    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    symbols: list[str] = field(default_factory=list)
    is_type_only: bool = False

    @property
    def weight(self) -> int:
        return len(self.symbols)


@dataclass
class FileLevelImportPair:
    """Module pair linked only by unresolved file imports."""

    from_module_id: int
    to_module_id: int
    from_module_path: str
    to_module_path: str
    import_count: int = 0
    is_type_only: bool = False


@dataclass
class _PairEvidence:
    symbols: dict[str, None] = field(default_factory=dict)  # ordered set
    type_only: bool = True


@dataclass
class _FileEvidence:
    count: int = 0
    type_only: bool = True


# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_FILE_MODULE_COUNTS_SQL = """
    SELECT d.file_id, mm.module_id, COUNT(*) AS n
    FROM definitions d
    JOIN module_members mm ON mm.definition_id = d.id
    GROUP BY d.file_id, mm.module_id
"""

_RESOLVED_IMPORTS_SQL = """
    SELECT i.from_file_id, i.is_type_only, s.name, mm.module_id AS to_module_id
    FROM imports i
    JOIN symbols s ON s.reference_id = i.id AND s.definition_id IS NOT NULL
    JOIN module_members mm ON mm.definition_id = s.definition_id
    ORDER BY i.from_file_id, i.line, s.id
"""

_UNRESOLVED_FILE_IMPORTS_SQL = """
    SELECT i.from_file_id, i.to_file_id, i.is_type_only
    FROM imports i
    WHERE i.to_file_id IS NOT NULL
      AND NOT EXISTS (
        SELECT 1 FROM symbols s
        WHERE s.reference_id = i.id AND s.definition_id IS NOT NULL
      )
"""

_MODULE_PATHS_SQL = "SELECT id, full_path FROM modules"


# ---------------------------------------------------------------------------
# ImportGraph
# ---------------------------------------------------------------------------


class ImportGraph:
    """Module-level import evidence, built once per snapshot."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._file_module: dict[int, int] | None = None
        self._module_paths: dict[int, str] = {}
        self._symbol_pairs: dict[tuple[int, int], _PairEvidence] = {}
        self._file_pairs: dict[tuple[int, int], _FileEvidence] = {}

    def load(self) -> ImportGraph:
        """Read the snapshot now so the graph outlives its session."""
        self._ensure_loaded()
        return self

    def _ensure_loaded(self) -> None:
        if self._file_module is not None:
            return

        self._module_paths = {
            row[0]: row[1] for row in self._session.execute(text(_MODULE_PATHS_SQL))
        }
        self._file_module = self._majority_file_modules()

        for from_file, type_only, name, to_module in self._session.execute(
            text(_RESOLVED_IMPORTS_SQL)
        ):
            from_module = self._file_module.get(from_file)
            if from_module is None or from_module == to_module:
                continue
            evidence = self._symbol_pairs.setdefault((from_module, to_module), _PairEvidence())
            evidence.symbols.setdefault(name, None)
            evidence.type_only = evidence.type_only and bool(type_only)

        for from_file, to_file, type_only in self._session.execute(
            text(_UNRESOLVED_FILE_IMPORTS_SQL)
        ):
            from_module = self._file_module.get(from_file)
            to_module = self._file_module.get(to_file)
            if from_module is None or to_module is None or from_module == to_module:
                continue
            file_ev = self._file_pairs.setdefault((from_module, to_module), _FileEvidence())
            file_ev.count += 1
            file_ev.type_only = file_ev.type_only and bool(type_only)

    def _majority_file_modules(self) -> dict[int, int]:
        counts: dict[int, Counter[int]] = defaultdict(Counter)
        for file_id, module_id, n in self._session.execute(text(_FILE_MODULE_COUNTS_SQL)):
            counts[file_id][module_id] = n
        return {
            file_id: min(counter, key=lambda mid: (-counter[mid], mid))
            for file_id, counter in counts.items()
        }

    # -----------------------------------------------------------------
    # Point queries
    # -----------------------------------------------------------------

    def module_of_file(self, file_id: int) -> int | None:
        self._ensure_loaded()
        assert self._file_module is not None
        return self._file_module.get(file_id)

    def has_path(self, from_module_id: int, to_module_id: int) -> bool:
        """True when any import in ``from`` reaches ``to`` (symbol or file level)."""
        self._ensure_loaded()
        key = (from_module_id, to_module_id)
        return key in self._symbol_pairs or key in self._file_pairs

    def imported_symbols(self, from_module_id: int, to_module_id: int) -> list[str]:
        self._ensure_loaded()
        evidence = self._symbol_pairs.get((from_module_id, to_module_id))
        return list(evidence.symbols) if evidence else []

    # -----------------------------------------------------------------
    # Bulk views
    # -----------------------------------------------------------------

    def runtime_edges(self) -> list[tuple[int, int]]:
        """Module pairs with at least one non type-only import."""
        self._ensure_loaded()
        edges = {key for key, ev in self._symbol_pairs.items() if not ev.type_only}
        edges.update(key for key, ev in self._file_pairs.items() if not ev.type_only)
        return sorted(edges)

    def import_only_pairs(
        self, call_pairs: Collection[tuple[int, int]] = ()
    ) -> list[ImportModulePair]:
        """Symbol-level pairs that have no traced call edge."""
        self._ensure_loaded()
        skip = set(call_pairs)
        return [
            ImportModulePair(
                from_module_id=f,
                to_module_id=t,
                from_module_path=self._module_paths[f],
                to_module_path=self._module_paths[t],
                symbols=list(ev.symbols),
                is_type_only=ev.type_only,
            )
            for (f, t), ev in sorted(self._symbol_pairs.items())
            if (f, t) not in skip
        ]

    def file_level_pairs(self) -> list[FileLevelImportPair]:
        self._ensure_loaded()
        return [
            FileLevelImportPair(
                from_module_id=f,
                to_module_id=t,
                from_module_path=self._module_paths[f],
                to_module_path=self._module_paths[t],
                import_count=ev.count,
                is_type_only=ev.type_only,
            )
            for (f, t), ev in sorted(self._file_pairs.items())
        ]
