"""Tests for CLI utilities.

Covers:
- find_repo_root() walking up to a .modlink directory
- load_cli_config() error conversion
- open_store() path resolution
"""

from __future__ import annotations

from pathlib import Path

import click
import pytest

from modlink.cli.utils import find_repo_root, load_cli_config, open_store
from modlink.config.models import LoggingConfig
from modlink.index import IndexStore


class TestFindRepoRoot:
    """Tests for find_repo_root function."""

    def test_finds_root_from_root(self, tmp_path: Path) -> None:
        (tmp_path / ".modlink").mkdir()

        assert find_repo_root(tmp_path) == tmp_path.resolve()

    def test_finds_root_from_subdirectory(self, tmp_path: Path) -> None:
        """Walks up from a nested directory."""
        (tmp_path / ".modlink").mkdir()
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)

        assert find_repo_root(nested) == tmp_path.resolve()

    def test_falls_back_to_start_path(self, tmp_path: Path) -> None:
        """Without any .modlink directory the start path is used."""
        nested = tmp_path / "src"
        nested.mkdir()

        assert find_repo_root(nested) == nested.resolve()

    def test_defaults_to_cwd(self, tmp_path: Path) -> None:
        assert find_repo_root() == tmp_path.resolve()


class TestLoadCliConfig:
    def test_overrides_applied(self, tmp_path: Path) -> None:
        config = load_cli_config(tmp_path, interactions={"batch_size": 4})

        assert config.interactions.batch_size == 4

    def test_invalid_yaml_becomes_click_exception(self, tmp_path: Path) -> None:
        (tmp_path / ".modlink").mkdir()
        (tmp_path / ".modlink" / "config.yaml").write_text("interactions: [unclosed")

        with pytest.raises(click.ClickException) as exc_info:
            load_cli_config(tmp_path)

        assert "CONFIG_PARSE_ERROR" in exc_info.value.message


class TestOpenStore:
    def test_explicit_db(self, tmp_path: Path, store: IndexStore) -> None:
        config = load_cli_config(tmp_path)

        opened = open_store(tmp_path, config, tmp_path / "index.db")

        assert opened.count_interactions() == 0

    def test_configured_path(self, tmp_path: Path) -> None:
        IndexStore.open(tmp_path / ".modlink" / "index.db", create=True)
        config = load_cli_config(tmp_path)

        opened = open_store(tmp_path, config, None)

        assert opened.count_interactions() == 0

    def test_missing_db_hint(self, tmp_path: Path) -> None:
        config = load_cli_config(tmp_path)

        with pytest.raises(click.ClickException) as exc_info:
            open_store(tmp_path, config, None)

        assert "database.path" in exc_info.value.message


class TestLoggingFromConfig:
    """load_cli_config applies the logging section."""

    def test_configured_level_used(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        applied: list[LoggingConfig] = []
        monkeypatch.setattr(
            "modlink.cli.utils.configure_logging", lambda **kw: applied.append(kw["config"])
        )
        (tmp_path / ".modlink").mkdir()
        (tmp_path / ".modlink" / "config.yaml").write_text("logging:\n  level: WARNING\n")

        load_cli_config(tmp_path)

        assert [c.level for c in applied] == ["WARNING"]

    def test_verbose_forces_debug(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        applied: list[LoggingConfig] = []
        monkeypatch.setattr(
            "modlink.cli.utils.configure_logging", lambda **kw: applied.append(kw["config"])
        )

        with click.Context(click.Command("modlink"), obj={"verbose": True}):
            load_cli_config(tmp_path)

        assert [c.level for c in applied] == ["DEBUG"]
