"""modlink interactions commands - generate, inspect and validate interactions."""

import asyncio
import json
from dataclasses import asdict
from pathlib import Path

import click
import questionary
from rich.console import Console
from rich.table import Table

from modlink.cli.utils import find_repo_root, load_cli_config, open_store
from modlink.config.models import ModlinkConfig
from modlink.core.errors import ModlinkError, StoreError
from modlink.core.logging import clear_run_id, get_log_file_path, set_run_id
from modlink.index import (
    Direction,
    IndexStore,
    InsertOutcome,
    InteractionPattern,
    InteractionSource,
)
from modlink.interactions import (
    GenerateResult,
    InteractionPipeline,
    build_process_groups,
    fix_issues,
    validate_inferred_interactions,
)
from modlink.interactions.validation import IssueKind
from modlink.llm import HttpLLMClient

_db_option = click.option(
    "--db",
    "db",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Index database (default: database.path from config)",
)
_json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON")

_RECOMMENDATIONS = {
    IssueKind.REVERSED: "DELETE (reverse already exists as AST interaction)",
    IssueKind.DIRECTION_CONFUSED: "DELETE (direction is wrong)",
    IssueKind.NO_IMPORTS: "DELETE (no static evidence)",
}


@click.group("interactions")
def interactions_group() -> None:
    """Module-to-module interactions."""


# =============================================================================
# generate
# =============================================================================


async def _generate(
    store: IndexStore, config: ModlinkConfig, *, dry_run: bool, force: bool
) -> GenerateResult:
    async with HttpLLMClient(config.llm) as client:
        pipeline = InteractionPipeline(
            store,
            client,
            llm_config=config.llm,
            config=config.interactions,
            dry_run=dry_run,
            force=force,
        )
        return await pipeline.run()


def _print_generate_result(console: Console, result: GenerateResult) -> None:
    console.print("\n[bold]Results[/bold]")
    console.print(f"Total module edges: {result.total_edges}")
    console.print(f"AST interactions created: {result.ast_interactions}")
    console.print(f"  Business: {result.business_count}")
    console.print(f"  Utility: {result.utility_count}")
    if result.test_internal_count:
        console.print(f"  Test-internal: {result.test_internal_count}")
    console.print(f"Inheritance interactions: {result.inheritance_interactions}")
    console.print(f"Import-based interactions: {result.import_based_interactions}")
    console.print(f"File-level import interactions: {result.file_level_interactions}")
    console.print(f"Process groups: {result.process_group_count}")
    console.print(f"LLM-inferred interactions: {result.inferred_interactions}")
    if result.fan_in_removed:
        console.print(f"[yellow]Fan-in cleanup removed: {result.fan_in_removed}[/yellow]")
    console.print(
        f"Targeted interactions: {result.targeted_interactions}"
        f" ({result.coverage_passes} pass(es))"
    )

    coverage = result.relationship_coverage
    if coverage is not None:
        console.print("\n[bold]Relationship -> Interaction Coverage[/bold]")
        console.print(f"  Total relationships: {coverage.total_relationships}")
        console.print(f"  Cross-module: {coverage.cross_module_relationships}")
        console.print(f"  Same-module (internal cohesion): {coverage.same_module_count}")
        console.print(
            f"  Contributing to interactions: "
            f"{coverage.relationships_contributing_to_interactions}"
            f"/{coverage.cross_module_relationships} ({coverage.coverage_percent:.1f}%)"
        )
        if coverage.orphaned_count > 0:
            console.print(
                f"  [yellow]Orphaned (missing module): {coverage.orphaned_count}[/yellow]"
            )

    if result.dry_run:
        console.print("\n[dim](Dry run - no changes persisted)[/dim]")


@interactions_group.command("generate")
@_db_option
@click.option("--batch-size", type=int, default=None, help="Module edges per LLM batch")
@click.option(
    "--min-relationship-coverage",
    type=float,
    default=None,
    help="Minimum % of cross-module relationships covered by interactions",
)
@click.option(
    "--max-gate-retries", type=int, default=None, help="Maximum targeted inference passes"
)
@click.option("--dry-run", is_flag=True, help="Run the LLM passes without writing")
@click.option("--force", is_flag=True, help="Clear existing interactions first")
@_json_option
def generate_command(
    db: Path | None,
    batch_size: int | None,
    min_relationship_coverage: float | None,
    max_gate_retries: int | None,
    dry_run: bool,
    force: bool,
    as_json: bool,
) -> None:
    """Detect module interactions and describe them with an LLM."""
    repo_root = find_repo_root()
    overrides = {
        "batch_size": batch_size,
        "min_relationship_coverage": min_relationship_coverage,
        "max_gate_retries": max_gate_retries,
    }
    config = load_cli_config(
        repo_root, interactions={k: v for k, v in overrides.items() if v is not None}
    )
    store = open_store(repo_root, config, db)

    run_id = set_run_id()
    try:
        result = asyncio.run(_generate(store, config, dry_run=dry_run, force=force))
    except ModlinkError as e:
        message = str(e)
        if (log_file := get_log_file_path()) is not None:
            message += f"\nSee {log_file} (run_id={run_id})"
        raise click.ClickException(message) from e
    finally:
        clear_run_id()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_generate_result(Console(), result)


# =============================================================================
# list
# =============================================================================


@interactions_group.command("list")
@_db_option
@click.option(
    "--source",
    type=click.Choice([s.value for s in InteractionSource]),
    default=None,
    help="Only interactions from this source",
)
@click.option(
    "--pattern",
    type=click.Choice([p.value for p in InteractionPattern]),
    default=None,
    help="Only interactions with this pattern",
)
@_json_option
def list_command(db: Path | None, source: str | None, pattern: str | None, as_json: bool) -> None:
    """List interactions, heaviest first."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)

    if pattern is not None:
        rows = store.get_interactions_by_pattern(InteractionPattern(pattern))
        if source is not None:
            rows = [r for r in rows if r.source == source]
    elif source is not None:
        rows = store.get_interactions_by_source(InteractionSource(source))
    else:
        rows = store.get_all_interactions()

    if as_json:
        click.echo(
            json.dumps(
                [
                    {
                        "id": r.id,
                        "from": r.from_module_path,
                        "to": r.to_module_path,
                        "direction": r.direction,
                        "pattern": r.pattern,
                        "source": r.source,
                        "weight": r.weight,
                        "confidence": r.confidence,
                        "semantic": r.semantic,
                        "symbols": r.symbols,
                    }
                    for r in rows
                ],
                indent=2,
            )
        )
        return

    console = Console()
    if not rows:
        console.print("[dim]No interactions found[/dim]")
        return

    table = Table(title=f"Interactions ({len(rows)})")
    table.add_column("ID", justify="right")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Pattern")
    table.add_column("Source")
    table.add_column("Weight", justify="right")
    table.add_column("Semantic")
    for r in rows:
        table.add_row(
            str(r.id),
            r.from_module_path,
            r.to_module_path,
            r.pattern or "",
            r.source + (f" ({r.confidence})" if r.confidence else ""),
            str(r.weight),
            r.semantic or "",
        )
    console.print(table)


# =============================================================================
# coverage
# =============================================================================


@interactions_group.command("coverage")
@_db_option
@_json_option
def coverage_command(db: Path | None, as_json: bool) -> None:
    """Show how many cross-module relationships are backed by interactions."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)
    coverage = store.get_relationship_coverage()
    breakdown = store.get_relationship_coverage_breakdown()

    if as_json:
        click.echo(
            json.dumps(
                {
                    "coverage": {
                        "total_relationships": coverage.total_relationships,
                        "cross_module_relationships": coverage.cross_module_relationships,
                        "same_module_count": coverage.same_module_count,
                        "contributing": coverage.relationships_contributing_to_interactions,
                        "coverage_percent": coverage.coverage_percent,
                        "orphaned_count": coverage.orphaned_count,
                    },
                    "breakdown": {
                        "covered": breakdown.covered,
                        "same_module": breakdown.same_module,
                        "no_call_edge": breakdown.no_call_edge,
                        "orphaned": breakdown.orphaned,
                        "by_type": breakdown.by_type,
                    },
                },
                indent=2,
            )
        )
        return

    console = Console()
    console.print(f"[bold]Relationship coverage: {coverage.coverage_percent:.1f}%[/bold]")
    table = Table()
    table.add_column("Bucket")
    table.add_column("Relationships", justify="right")
    table.add_row("covered", str(breakdown.covered))
    table.add_row("same module", str(breakdown.same_module))
    table.add_row("no interaction", str(breakdown.no_call_edge))
    table.add_row("orphaned", str(breakdown.orphaned))
    console.print(table)
    by_type = ", ".join(f"{k}: {v}" for k, v in breakdown.by_type.items())
    console.print(f"[dim]By type: {by_type}[/dim]")


# =============================================================================
# validate
# =============================================================================


@interactions_group.command("validate")
@_db_option
@click.option("--fix", is_flag=True, help="Delete interactions that fail validation")
@_json_option
def validate_command(db: Path | None, fix: bool, as_json: bool) -> None:
    """Check LLM-inferred interactions against static evidence."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)
    issues = validate_inferred_interactions(store, build_process_groups(store))
    fixed = fix_issues(store, issues) if fix and issues else 0

    if as_json:
        click.echo(
            json.dumps(
                {
                    "issues": [i.to_dict() for i in issues],
                    "summary": {"total": len(issues), "fixed": fixed},
                },
                indent=2,
            )
        )
        return

    console = Console()
    if not issues:
        console.print("[green]All LLM-inferred interactions passed validation.[/green]")
        return

    console.print(f"[bold]Validation Issues ({len(issues)})[/bold]\n")
    for issue in issues:
        color = "red" if issue.kind is IssueKind.REVERSED else "yellow"
        console.print(
            f"  [{color}]{issue.kind.value}[/{color}] {issue.from_path} -> {issue.to_path}"
        )
        console.print(f"    [dim]{issue.detail}[/dim]")
        console.print(f"    [yellow]Recommendation: {_RECOMMENDATIONS[issue.kind]}[/yellow]\n")

    if fix:
        console.print(f"[green]Fixed {fixed} issues (deleted invalid interactions).[/green]")
    else:
        console.print("[dim]Use --fix to auto-remediate these issues.[/dim]")


# =============================================================================
# show / create / update
# =============================================================================

_pattern_choice = click.Choice([p.value for p in InteractionPattern])
_direction_choice = click.Choice([d.value for d in Direction])


def _split_symbols(symbols: str | None) -> list[str] | None:
    if symbols is None:
        return None
    return [s.strip() for s in symbols.split(",") if s.strip()]


@interactions_group.command("show")
@click.argument("interaction_id", type=int)
@_db_option
@_json_option
def show_command(interaction_id: int, db: Path | None, as_json: bool) -> None:
    """Show one interaction by ID."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)

    r = store.get_interaction(interaction_id)
    if r is None:
        raise click.ClickException(str(StoreError.unknown_record("interactions", interaction_id)))

    if as_json:
        click.echo(json.dumps(asdict(r), indent=2))
        return

    console = Console()
    console.print(
        f"[bold]Interaction {r.id}[/bold]: [cyan]{r.from_module_path}[/cyan]"
        f" {'<->' if r.direction == Direction.BI.value else '->'}"
        f" [cyan]{r.to_module_path}[/cyan]"
    )
    console.print(f"  Pattern:    {r.pattern or '-'}")
    console.print(f"  Source:     {r.source}" + (f" ({r.confidence})" if r.confidence else ""))
    console.print(f"  Weight:     {r.weight}")
    console.print(f"  Semantic:   {r.semantic or '-'}")
    console.print(f"  Symbols:    {', '.join(r.symbols) or '-'}")


@interactions_group.command("create")
@click.option("--from", "from_path", required=True, help="Source module path")
@click.option("--to", "to_path", required=True, help="Target module path")
@click.option("--semantic", default=None, help="What the interaction does")
@click.option("--pattern", type=_pattern_choice, default=None, help="Interaction pattern")
@click.option(
    "--direction", type=_direction_choice, default=Direction.UNI.value, show_default=True
)
@click.option("--weight", type=click.IntRange(min=0), default=1, show_default=True)
@_db_option
def create_command(
    from_path: str,
    to_path: str,
    semantic: str | None,
    pattern: str | None,
    direction: str,
    weight: int,
    db: Path | None,
) -> None:
    """Record an interaction between two modules by path."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)

    from_module = store.get_module_by_path(from_path)
    if from_module is None or from_module.id is None:
        raise click.ClickException(f'Module "{from_path}" not found.')
    to_module = store.get_module_by_path(to_path)
    if to_module is None or to_module.id is None:
        raise click.ClickException(f'Module "{to_path}" not found.')
    if from_module.id == to_module.id:
        raise click.ClickException("An interaction needs two different modules.")

    outcome = store.insert_interaction(
        from_module.id,
        to_module.id,
        source=InteractionSource.AST,
        weight=weight,
        pattern=InteractionPattern(pattern) if pattern else None,
        semantic=semantic,
        direction=Direction(direction),
    )
    if outcome is InsertOutcome.ALREADY_EXISTS:
        raise click.ClickException(f"Interaction {from_path} -> {to_path} already exists.")

    created = store.get_interaction_by_modules(from_module.id, to_module.id)
    label = f"interaction {created.id}" if created is not None else "interaction"
    Console(stderr=True).print(f"[green]✓[/green] Created {label}: {from_path} -> {to_path}")


@interactions_group.command("update")
@click.argument("interaction_id", type=int)
@click.option("--semantic", default=None, help="New semantic description")
@click.option("--pattern", type=_pattern_choice, default=None, help="New pattern")
@click.option("--direction", type=_direction_choice, default=None, help="New direction")
@click.option("--symbols", default=None, help="Comma-separated symbol names")
@_db_option
def update_command(
    interaction_id: int,
    semantic: str | None,
    pattern: str | None,
    direction: str | None,
    symbols: str | None,
    db: Path | None,
) -> None:
    """Change fields of one interaction."""
    if semantic is None and pattern is None and direction is None and symbols is None:
        raise click.UsageError(
            "Give at least one of --semantic, --pattern, --direction or --symbols."
        )

    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)

    updated = store.update_interaction(
        interaction_id,
        semantic=semantic,
        pattern=InteractionPattern(pattern) if pattern else None,
        direction=Direction(direction) if direction else None,
        symbols=_split_symbols(symbols),
    )
    if not updated:
        raise click.ClickException(str(StoreError.unknown_record("interactions", interaction_id)))
    Console(stderr=True).print(f"[green]✓[/green] Updated interaction {interaction_id}")


# =============================================================================
# delete
# =============================================================================


@interactions_group.command("delete")
@click.argument("interaction_id", type=int)
@_db_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def delete_command(interaction_id: int, db: Path | None, yes: bool) -> None:
    """Delete one interaction by ID."""
    repo_root = find_repo_root()
    store = open_store(repo_root, load_cli_config(repo_root), db)

    interaction = store.get_interaction(interaction_id)
    if interaction is None:
        raise click.ClickException(str(StoreError.unknown_record("interactions", interaction_id)))

    console = Console(stderr=True)
    console.print(
        f"Interaction {interaction.id}: [cyan]{interaction.from_module_path}[/cyan]"
        f" -> [cyan]{interaction.to_module_path}[/cyan] ({interaction.source})"
    )
    if not yes:
        answer = questionary.confirm("Delete this interaction?", default=False).ask()
        if not answer:
            console.print("[dim]Cancelled[/dim]")
            return

    store.delete_interaction(interaction_id)
    console.print(f"[green]✓[/green] Deleted interaction {interaction_id}")
