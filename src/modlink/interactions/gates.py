"""Structural gate for LLM-proposed interactions.

Rules run in order and the first failure wins:

1. ``duplicate`` - the ordered pair is already persisted or accepted
2. ``self-loop`` - both ends are the same module
3. ``reverse-of-ast`` - static analysis already found the opposite direction
4. ``type-only-initiator`` - the initiator holds only interfaces/types/enums

Rejections are normal filtering, logged at debug.
"""

from __future__ import annotations

from collections.abc import Set
from typing import TYPE_CHECKING

import structlog

from modlink.config.constants import TYPE_ONLY_KINDS
from modlink.index.models import InteractionSource
from modlink.interactions.models import GateResult

if TYPE_CHECKING:
    from modlink.index import IndexStore, Module

log = structlog.get_logger(__name__)

REASON_DUPLICATE = "duplicate"
REASON_SELF_LOOP = "self-loop"
REASON_REVERSE_OF_AST = "reverse-of-ast"
REASON_TYPE_ONLY_INITIATOR = "type-only-initiator"


def is_type_only_module(module_id: int, store: IndexStore) -> bool:
    """True when every definition in the module is a type-level kind. Empty modules are not."""
    definitions = store.get_module_definitions(module_id)
    if not definitions:
        return False
    return all(d.kind in TYPE_ONLY_KINDS for d in definitions)


def _check(
    from_id: int, to_id: int, existing_pairs: Set[tuple[int, int]], store: IndexStore
) -> str | None:
    if (from_id, to_id) in existing_pairs:
        return REASON_DUPLICATE
    if from_id == to_id:
        return REASON_SELF_LOOP

    reverse = store.get_interaction_by_modules(to_id, from_id)
    if reverse is not None and reverse.source in InteractionSource.static_sources():
        return REASON_REVERSE_OF_AST

    if is_type_only_module(from_id, store):
        return REASON_TYPE_ONLY_INITIATOR
    return None


def gate_inferred_interaction(
    from_module: Module,
    to_module: Module,
    existing_pairs: Set[tuple[int, int]],
    store: IndexStore,
) -> GateResult:
    assert from_module.id is not None and to_module.id is not None
    reason = _check(from_module.id, to_module.id, existing_pairs, store)
    if reason is None:
        return GateResult.accept()

    log.debug(
        "gate_rejected",
        reason=reason,
        from_module=from_module.full_path,
        to_module=to_module.full_path,
    )
    return GateResult.reject(reason)
