"""Process grouping via import-graph connectivity.

Modules connected (in either direction) by runtime imports run in the same
OS process. Connected components are computed with union-find; every
component is one process group. Modules in different groups can only talk
through runtime protocols (HTTP, IPC, queues, CLI invocation), which is what
cross-process inference looks for.

Group ids are the smallest module id in the component, so the partition
and its labels do not depend on input order.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import combinations
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from modlink.index import IndexStore, Module

log = structlog.get_logger(__name__)


class _UnionFind:
    """Union-find with path compression and union by rank."""

    def __init__(self) -> None:
        self._parent: dict[int, int] = {}
        self._rank: dict[int, int] = {}

    def add(self, x: int) -> None:
        if x not in self._parent:
            self._parent[x] = x
            self._rank[x] = 0

    def find(self, x: int) -> int:
        self.add(x)
        root = x
        while self._parent[root] != root:
            root = self._parent[root]
        # Path compression
        while x != root:
            parent = self._parent[x]
            self._parent[x] = root
            x = parent
        return root

    def union(self, a: int, b: int) -> None:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] = rank_a + 1


@dataclass
class ProcessGroups:
    """Partition of modules into process groups."""

    module_to_group: dict[int, int] = field(default_factory=dict)
    group_to_modules: dict[int, list[Module]] = field(default_factory=dict)

    @property
    def group_count(self) -> int:
        return len(self.group_to_modules)


def compute_process_groups(
    modules: Sequence[Module], import_edges: Iterable[tuple[int, int]]
) -> ProcessGroups:
    """Partition ``modules`` by undirected connectivity over ``import_edges``.

    Edges touching a module outside ``modules`` are ignored. Isolated
    modules form singleton groups.
    """
    by_id = {m.id: m for m in modules if m.id is not None}
    uf = _UnionFind()
    for module_id in by_id:
        uf.add(module_id)
    for from_id, to_id in import_edges:
        if from_id in by_id and to_id in by_id:
            uf.union(from_id, to_id)

    components: dict[int, list[int]] = {}
    for module_id in sorted(by_id):
        components.setdefault(uf.find(module_id), []).append(module_id)

    groups = ProcessGroups()
    for member_ids in sorted(components.values(), key=lambda ids: ids[0]):
        group_id = member_ids[0]
        groups.group_to_modules[group_id] = [by_id[i] for i in member_ids]
        for module_id in member_ids:
            groups.module_to_group[module_id] = group_id
    return groups


def get_cross_process_group_pairs(
    groups: ProcessGroups,
) -> list[tuple[list[Module], list[Module]]]:
    """Every unordered pair of distinct groups, once each."""
    return [
        (groups.group_to_modules[a], groups.group_to_modules[b])
        for a, b in combinations(groups.group_to_modules, 2)
    ]


def are_same_process(from_module_id: int, to_module_id: int, groups: ProcessGroups) -> bool:
    """True when both modules share a group. Unknown modules count as same-process."""
    from_group = groups.module_to_group.get(from_module_id)
    to_group = groups.module_to_group.get(to_module_id)
    if from_group is None or to_group is None:
        return True
    return from_group == to_group


def get_process_description(from_module_id: int, to_module_id: int, groups: ProcessGroups) -> str:
    if are_same_process(from_module_id, to_module_id, groups):
        return "same-process (shared import graph)"
    return "separate-process (no import connectivity)"


def get_process_group_label(modules: Sequence[Module]) -> str:
    """Short label for a group.

    The common dotted prefix below the project root when there is one,
    otherwise the most common depth-1 segment (first seen wins ties).
    """
    if not modules:
        return "empty"
    all_parts = [m.full_path.split(".") for m in modules]
    if len(modules) == 1:
        parts = all_parts[0]
        return parts[1] if len(parts) > 1 else parts[0]

    common_depth = 0
    for segments in zip(*all_parts):
        if all(s == segments[0] for s in segments):
            common_depth += 1
        else:
            break

    if common_depth > 1:
        return ".".join(all_parts[0][1:common_depth])

    counts = Counter(parts[1] if len(parts) > 1 else parts[0] for parts in all_parts)
    return counts.most_common(1)[0][0]


def build_process_groups(store: IndexStore) -> ProcessGroups:
    """Group every module that owns definitions, using runtime import edges."""
    modules = [m.module for m in store.get_all_modules_with_members()]
    groups = compute_process_groups(modules, store.get_module_import_edges())
    log.debug(
        "process_groups_computed",
        modules=len(modules),
        groups=groups.group_count,
    )
    return groups
