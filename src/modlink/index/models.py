"""SQLModel definitions for the code index and the interaction layer.

Single source of truth for all table schemas.

Architecture:
- Structural facts: files, definitions, imports, imported symbols, usages.
  Written by the indexer; read-only from the interaction engine's view.
- Annotations: definition metadata and symbol-level relationship annotations.
- Module tree: modules and their member definitions (one module per definition).
- Interactions: directed module-to-module edges produced by the engine.
"""

import json
import time
from enum import Enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, UniqueConstraint
from sqlmodel import Field, SQLModel

# ============================================================================
# ENUMS
# ============================================================================


class RelationshipType(str, Enum):
    """Kind of a symbol-level relationship annotation."""

    USES = "uses"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"


class InteractionSource(str, Enum):
    """Producer of an interaction.

    AST and AST_IMPORT are static evidence; LLM_INFERRED rows carry a
    confidence and are the only rows the fan-in cleanup may delete.
    """

    AST = "ast"
    AST_IMPORT = "ast-import"
    LLM_INFERRED = "llm-inferred"

    @classmethod
    def static_sources(cls) -> "frozenset[InteractionSource]":
        return frozenset({cls.AST, cls.AST_IMPORT})


class InteractionPattern(str, Enum):
    """Architectural role of an interaction."""

    BUSINESS = "business"
    UTILITY = "utility"
    TEST_INTERNAL = "test-internal"


class Confidence(str, Enum):
    """Confidence of an LLM-inferred interaction. Low is never persisted."""

    HIGH = "high"
    MEDIUM = "medium"


class Direction(str, Enum):
    UNI = "uni"
    BI = "bi"


# ============================================================================
# STRUCTURAL FACT TABLES
# ============================================================================


class File(SQLModel, table=True):
    """Tracked source file."""

    __tablename__ = "files"

    id: int | None = Field(default=None, primary_key=True)
    path: str = Field(unique=True, index=True)
    language: str | None = None


class Definition(SQLModel, table=True):
    """Top-level definition (function, class, interface, type, enum, variable)."""

    __tablename__ = "definitions"

    id: int | None = Field(default=None, primary_key=True)
    file_id: int = Field(
        sa_column=Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), index=True)
    )
    name: str = Field(index=True)
    kind: str = Field(index=True)
    is_exported: bool = Field(default=False)
    line: int
    end_line: int
    extends_name: str | None = None


class Import(SQLModel, table=True):
    """Import statement. ``to_file_id`` is NULL for external/unresolved sources."""

    __tablename__ = "imports"

    id: int | None = Field(default=None, primary_key=True)
    from_file_id: int = Field(
        sa_column=Column(Integer, ForeignKey("files.id", ondelete="CASCADE"), index=True)
    )
    to_file_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("files.id", ondelete="SET NULL"), index=True, nullable=True
        ),
    )
    type: str = Field(default="import")  # import, re-export, dynamic
    source: str
    is_external: bool = Field(default=False)
    is_type_only: bool = Field(default=False)
    line: int = Field(default=0)


class Symbol(SQLModel, table=True):
    """Name bound in a file: either imported (``reference_id``) or local (``file_id``).

    ``definition_id`` is the resolved definition, when resolution succeeded.
    """

    __tablename__ = "symbols"

    id: int | None = Field(default=None, primary_key=True)
    reference_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("imports.id", ondelete="CASCADE"), index=True, nullable=True
        ),
    )
    file_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=True
        ),
    )
    definition_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("definitions.id", ondelete="SET NULL"), index=True, nullable=True
        ),
    )
    name: str
    local_name: str
    kind: str = Field(default="named")  # named, default, namespace, side-effect


class Usage(SQLModel, table=True):
    """Occurrence of a symbol with its syntactic context (call_expression, ...)."""

    __tablename__ = "usages"

    id: int | None = Field(default=None, primary_key=True)
    symbol_id: int = Field(
        sa_column=Column(Integer, ForeignKey("symbols.id", ondelete="CASCADE"), index=True)
    )
    line: int
    context: str


# ============================================================================
# ANNOTATION TABLES
# ============================================================================


class DefinitionMetadata(SQLModel, table=True):
    """Key/value annotation on a definition (``purpose``, ``domain``, ...)."""

    __tablename__ = "definition_metadata"
    __table_args__ = (UniqueConstraint("definition_id", "key"),)

    id: int | None = Field(default=None, primary_key=True)
    definition_id: int = Field(
        sa_column=Column(Integer, ForeignKey("definitions.id", ondelete="CASCADE"), index=True)
    )
    key: str = Field(index=True)
    value: str


class RelationshipAnnotation(SQLModel, table=True):
    """Directed symbol-level relationship between two definitions."""

    __tablename__ = "relationship_annotations"
    __table_args__ = (UniqueConstraint("from_definition_id", "to_definition_id"),)

    id: int | None = Field(default=None, primary_key=True)
    from_definition_id: int = Field(
        sa_column=Column(Integer, ForeignKey("definitions.id", ondelete="CASCADE"), index=True)
    )
    to_definition_id: int = Field(
        sa_column=Column(Integer, ForeignKey("definitions.id", ondelete="CASCADE"), index=True)
    )
    relationship_type: str = Field(default=RelationshipType.USES.value)
    semantic: str = Field(default="")


# ============================================================================
# MODULE TREE
# ============================================================================


class Module(SQLModel, table=True):
    """Node in the module tree. ``full_path`` is the dot-joined slug chain."""

    __tablename__ = "modules"

    id: int | None = Field(default=None, primary_key=True)
    parent_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer, ForeignKey("modules.id", ondelete="CASCADE"), index=True, nullable=True
        ),
    )
    slug: str
    full_path: str = Field(unique=True, index=True)
    name: str
    description: str | None = None
    depth: int = Field(default=0)
    is_test: bool = Field(default=False, index=True)


class ModuleMember(SQLModel, table=True):
    """Assignment of a definition to exactly one module."""

    __tablename__ = "module_members"

    definition_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("definitions.id", ondelete="CASCADE"), primary_key=True
        )
    )
    module_id: int = Field(
        sa_column=Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    )


# ============================================================================
# INTERACTIONS
# ============================================================================


class Interaction(SQLModel, table=True):
    """Directed module-to-module interaction. At most one row per ordered pair."""

    __tablename__ = "interactions"
    __table_args__ = (
        UniqueConstraint("from_module_id", "to_module_id"),
        CheckConstraint("from_module_id != to_module_id", name="ck_interactions_no_self_loop"),
    )

    id: int | None = Field(default=None, primary_key=True)
    from_module_id: int = Field(
        sa_column=Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    )
    to_module_id: int = Field(
        sa_column=Column(Integer, ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    )
    direction: str = Field(default=Direction.UNI.value)
    weight: int = Field(default=1)
    pattern: str | None = None
    symbols: str | None = None  # JSON array of symbol names
    semantic: str | None = None
    source: str = Field(default=InteractionSource.AST.value, index=True)
    confidence: str | None = None
    created_at: float = Field(default_factory=time.time)

    def get_symbols(self) -> list[str]:
        """Parse symbols JSON to list."""
        if self.symbols is None:
            return []
        result: list[str] = json.loads(self.symbols)
        return result
