"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local modlink package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of modlink modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("modlink"):
        del sys.modules[module_name]

from modlink.index import IndexStore  # noqa: E402
from tests.support import IndexSeed, ScriptedLLMClient  # noqa: E402


@pytest.fixture
def store(tmp_path: Path) -> Generator[IndexStore, None, None]:
    """Empty index with the full schema."""
    index = IndexStore.open(tmp_path / "index.db", create=True)
    yield index
    index.db.engine.dispose()


@pytest.fixture
def seed(store: IndexStore) -> IndexSeed:
    """Row builder over ``store``."""
    return IndexSeed(store)


@pytest.fixture
def llm() -> ScriptedLLMClient:
    """LLM client that answers with queued responses (empty string once drained)."""
    return ScriptedLLMClient()
