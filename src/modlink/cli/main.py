"""modlink CLI - modlink command."""

import click

from modlink.cli.interactions import interactions_group
from modlink.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="modlink")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """modlink - module interaction inference over a code index."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(interactions_group, name="interactions")


if __name__ == "__main__":
    cli()
