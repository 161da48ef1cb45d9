"""Module tree queries - modules, their member definitions, and metadata."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlmodel import col, select

from modlink.index.models import Definition, DefinitionMetadata, Module, ModuleMember

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlmodel import Session


@dataclass
class ModuleMemberInfo:
    """A definition assigned to a module."""

    definition_id: int
    name: str
    kind: str


@dataclass
class ModuleWithMembers:
    """Module plus its member definitions, ordered by file then line."""

    module: Module
    members: list[ModuleMemberInfo] = field(default_factory=list)

    @property
    def id(self) -> int:
        assert self.module.id is not None
        return self.module.id

    @property
    def full_path(self) -> str:
        return self.module.full_path


class ModuleQueries:
    """Read-only queries over the module tree."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_all_modules(self) -> list[Module]:
        """All modules ordered by depth then path."""
        stmt = select(Module).order_by(col(Module.depth), col(Module.full_path))
        return list(self._session.exec(stmt).all())

    def get_module(self, module_id: int) -> Module | None:
        return self._session.get(Module, module_id)

    def get_module_by_path(self, full_path: str) -> Module | None:
        stmt = select(Module).where(Module.full_path == full_path)
        return self._session.exec(stmt).first()

    def get_all_modules_with_members(self) -> list[ModuleWithMembers]:
        """Modules that own at least one definition."""
        members_by_module = self._members_by_module()
        return [
            ModuleWithMembers(module=m, members=members_by_module[m.id])
            for m in self.get_all_modules()
            if m.id in members_by_module
        ]

    def get_module_with_members(self, module_id: int) -> ModuleWithMembers | None:
        module = self.get_module(module_id)
        if module is None:
            return None
        members = self._members_by_module(module_ids=[module_id]).get(module_id, [])
        return ModuleWithMembers(module=module, members=members)

    def get_module_definitions(self, module_id: int) -> list[Definition]:
        """Member definitions of one module, ordered by file then line."""
        stmt = (
            select(Definition)
            .join(ModuleMember, col(ModuleMember.definition_id) == col(Definition.id))
            .where(ModuleMember.module_id == module_id)
            .order_by(col(Definition.file_id), col(Definition.line))
        )
        return list(self._session.exec(stmt).all())

    def get_test_module_ids(self) -> set[int]:
        stmt = select(Module.id).where(col(Module.is_test).is_(True))
        return {mid for mid in self._session.exec(stmt) if mid is not None}

    def get_definition_metadata_values(
        self, definition_ids: Iterable[int], key: str
    ) -> dict[int, str]:
        """Map definition id -> metadata value for one key."""
        ids = list(definition_ids)
        if not ids:
            return {}
        stmt = select(DefinitionMetadata).where(
            col(DefinitionMetadata.definition_id).in_(ids),
            DefinitionMetadata.key == key,
        )
        return {row.definition_id: row.value for row in self._session.exec(stmt)}

    def _members_by_module(
        self, module_ids: list[int] | None = None
    ) -> dict[int, list[ModuleMemberInfo]]:
        stmt = (
            select(ModuleMember.module_id, Definition.id, Definition.name, Definition.kind)
            .join(Definition, col(Definition.id) == col(ModuleMember.definition_id))
            .order_by(col(Definition.file_id), col(Definition.line))
        )
        if module_ids is not None:
            stmt = stmt.where(col(ModuleMember.module_id).in_(module_ids))

        result: dict[int, list[ModuleMemberInfo]] = defaultdict(list)
        for module_id, def_id, name, kind in self._session.exec(stmt):
            result[module_id].append(ModuleMemberInfo(definition_id=def_id, name=name, kind=kind))
        return dict(result)
