"""Shared fixtures for index tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from modlink.index._internal.db import Database


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a temporary database with schema."""
    from modlink.index._internal.db import Database, create_additional_indexes

    db = Database(tmp_path / "test.db")
    db.create_all()
    create_additional_indexes(db.engine)
    yield db
    db.engine.dispose()
