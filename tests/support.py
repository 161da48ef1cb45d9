"""Test helpers: an index row builder and a scripted LLM client."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from modlink.index import (
    Definition,
    DefinitionMetadata,
    File,
    Import,
    IndexStore,
    InteractionPattern,
    InteractionSource,
    Module,
    ModuleMember,
    RelationshipAnnotation,
    RelationshipType,
    Symbol,
    Usage,
)
from modlink.index.models import Confidence
from modlink.llm import CompletionRequest

Responder = Callable[[CompletionRequest], str]


@dataclass
class _DefSpan:
    file_id: int
    line: int


class IndexSeed:
    """Writes index rows the way the indexer would.

    Every module gets its own source file; definitions are laid out ten
    lines apart in that file so call sites can be placed inside them.
    """

    def __init__(self, store: IndexStore) -> None:
        self.store = store
        self._module_files: dict[int, int] = {}
        self._next_line: dict[int, int] = {}
        self._spans: dict[int, _DefSpan] = {}

    def _add(self, row: object) -> int:
        with self.store.db.session() as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return row.id  # type: ignore[attr-defined, no-any-return]

    def file(self, path: str) -> int:
        return self._add(File(path=path, language="typescript"))

    def module(
        self, full_path: str, *, description: str | None = None, is_test: bool = False
    ) -> int:
        slug = full_path.split(".")[-1]
        module_id = self._add(
            Module(
                slug=slug,
                full_path=full_path,
                name=slug.replace("_", " ").title(),
                description=description,
                depth=full_path.count("."),
                is_test=is_test,
            )
        )
        self._module_files[module_id] = self.file(full_path.replace(".", "/") + ".ts")
        return module_id

    def file_of(self, module_id: int) -> int:
        return self._module_files[module_id]

    def definition(
        self, module_id: int, name: str, *, kind: str = "function", file_id: int | None = None
    ) -> int:
        if file_id is None:
            file_id = self._module_files[module_id]
        line = self._next_line.get(file_id, 1)
        self._next_line[file_id] = line + 10
        def_id = self._add(
            Definition(
                file_id=file_id,
                name=name,
                kind=kind,
                is_exported=True,
                line=line,
                end_line=line + 9,
            )
        )
        with self.store.db.session() as session:
            session.add(ModuleMember(definition_id=def_id, module_id=module_id))
            session.commit()
        self._spans[def_id] = _DefSpan(file_id=file_id, line=line)
        return def_id

    def metadata(self, definition_id: int, key: str, value: str) -> None:
        self._add(DefinitionMetadata(definition_id=definition_id, key=key, value=value))

    def import_symbols(
        self,
        from_module_id: int,
        to_module_id: int,
        definition_ids: Sequence[int],
        *,
        type_only: bool = False,
    ) -> list[int]:
        """One import of ``to``'s file into ``from``'s file, one resolved symbol per definition."""
        import_id = self._add(
            Import(
                from_file_id=self._module_files[from_module_id],
                to_file_id=self._module_files[to_module_id],
                source="./" + str(to_module_id),
                is_type_only=type_only,
                line=1,
            )
        )
        symbol_ids: list[int] = []
        with self.store.db.session() as session:
            for def_id in definition_ids:
                definition = session.get(Definition, def_id)
                assert definition is not None
                symbol = Symbol(
                    reference_id=import_id,
                    definition_id=def_id,
                    name=definition.name,
                    local_name=definition.name,
                )
                session.add(symbol)
                session.commit()
                session.refresh(symbol)
                assert symbol.id is not None
                symbol_ids.append(symbol.id)
        return symbol_ids

    def file_import(
        self, from_module_id: int, to_module_id: int, *, type_only: bool = False
    ) -> int:
        """Import whose symbols never resolved."""
        return self._add(
            Import(
                from_file_id=self._module_files[from_module_id],
                to_file_id=self._module_files[to_module_id],
                source="./" + str(to_module_id),
                is_type_only=type_only,
                line=2,
            )
        )

    def call(self, caller_id: int, callee_id: int, *, times: int = 1) -> None:
        """``caller`` calls ``callee`` through an import of the callee's module file."""
        caller = self._spans[caller_id]
        callee = self._spans[callee_id]
        with self.store.db.session() as session:
            callee_def = session.get(Definition, callee_id)
            assert callee_def is not None
            import_row = Import(
                from_file_id=caller.file_id,
                to_file_id=callee.file_id,
                source=f"./{callee_def.name}",
                line=1,
            )
            session.add(import_row)
            session.commit()
            session.refresh(import_row)
            symbol = Symbol(
                reference_id=import_row.id,
                definition_id=callee_id,
                name=callee_def.name,
                local_name=callee_def.name,
            )
            session.add(symbol)
            session.commit()
            session.refresh(symbol)
            assert symbol.id is not None
            for _ in range(times):
                session.add(
                    Usage(symbol_id=symbol.id, line=caller.line + 1, context="call_expression")
                )
            session.commit()

    def relationship(
        self,
        from_definition_id: int,
        to_definition_id: int,
        *,
        relationship_type: RelationshipType = RelationshipType.USES,
        semantic: str = "",
    ) -> int:
        return self._add(
            RelationshipAnnotation(
                from_definition_id=from_definition_id,
                to_definition_id=to_definition_id,
                relationship_type=relationship_type.value,
                semantic=semantic,
            )
        )

    def interaction(
        self,
        from_module_id: int,
        to_module_id: int,
        *,
        source: InteractionSource = InteractionSource.AST,
        pattern: InteractionPattern | None = InteractionPattern.BUSINESS,
        confidence: Confidence | None = None,
        weight: int = 1,
    ) -> None:
        self.store.insert_interaction(
            from_module_id,
            to_module_id,
            source=source,
            pattern=pattern,
            confidence=confidence,
            weight=weight,
        )

    def module_row(self, module_id: int) -> Module:
        with self.store.db.session() as session:
            module = session.get(Module, module_id)
            assert module is not None
            session.expunge(module)
            return module


@dataclass
class ScriptedLLMClient:
    """Answers ``complete`` calls in order from a queue.

    Queue items are response strings, exceptions to raise, or callables
    taking the request. A drained queue answers with ``default``.
    """

    queue: list[str | Exception | Responder] = field(default_factory=list)
    default: str | Responder = ""
    requests: list[CompletionRequest] = field(default_factory=list)

    def script(self, *items: str | Exception | Responder) -> ScriptedLLMClient:
        self.queue.extend(items)
        return self

    async def complete(self, request: CompletionRequest) -> str:
        self.requests.append(request)
        item = self.queue.pop(0) if self.queue else self.default
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def prompts(self, system_prompt: str) -> list[str]:
        """User prompts sent with one system prompt."""
        return [r.user_prompt for r in self.requests if r.system_prompt == system_prompt]
