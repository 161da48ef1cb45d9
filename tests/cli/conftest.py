"""CLI test fixtures."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from modlink.core.logging import configure_logging


@pytest.fixture(autouse=True)
def _isolated_cli(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Run commands from an empty repo with no global config.

    Logging is configured once here so command output stays plain; the
    CLI's own ``configure_logging`` calls would bind handlers to the
    runner's streams.
    """
    configure_logging(level="WARNING")
    monkeypatch.setattr("modlink.cli.main.configure_logging", lambda **_: None)
    monkeypatch.setattr("modlink.cli.utils.configure_logging", lambda **_: None)
    monkeypatch.setattr(
        "modlink.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml"
    )
    for var in ("MODLINK__LLM__API_KEY", "MODLINK__DATABASE__PATH"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    configure_logging(level="WARNING")
