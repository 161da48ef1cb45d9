"""CLI utilities."""

from pathlib import Path

import click

from modlink.config import get_db_path, load_config
from modlink.config.models import ModlinkConfig
from modlink.core.errors import ModlinkError
from modlink.core.logging import configure_logging
from modlink.index import IndexStore


def find_repo_root(start_path: Path | None = None) -> Path:
    """Find the nearest directory holding a ``.modlink`` directory.

    Walks up from start_path (default: cwd). Falls back to start_path
    itself when no ancestor has one, so a fresh checkout still works with
    ``--db``.
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    current = start
    while current != current.parent:
        if (current / ".modlink").is_dir():
            return current
        current = current.parent
    return start


def load_cli_config(repo_root: Path, **overrides: dict[str, object]) -> ModlinkConfig:
    """load_config with ModlinkError turned into a ClickException.

    The loaded ``logging`` section replaces the bootstrap logging set up by
    the ``modlink`` group; ``-v`` still forces DEBUG.
    """
    try:
        config = load_config(repo_root, **{k: v for k, v in overrides.items() if v})
    except ModlinkError as e:
        raise click.ClickException(str(e)) from e
    _apply_logging(config)
    return config


def _apply_logging(config: ModlinkConfig) -> None:
    ctx = click.get_current_context(silent=True)
    verbose = bool(ctx is not None and (ctx.find_root().obj or {}).get("verbose"))
    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)


def open_store(repo_root: Path, config: ModlinkConfig, db: Path | None) -> IndexStore:
    """Open the index at ``--db`` or the configured path."""
    db_path = db if db is not None else get_db_path(repo_root, config)
    try:
        return IndexStore.open(db_path, config.database)
    except ModlinkError as e:
        raise click.ClickException(
            f"{e}\nPoint --db at an existing index or set database.path in .modlink/config.yaml."
        ) from e
