#!/usr/bin/env python3
"""
Command-line interface for SoftDelete Toolkit.

Inspects configuration and reports the soft delete state of database tables.
"""

import sys
from typing import Any, Dict, Optional

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import MetaData, create_engine, func, select
from sqlalchemy import Table as SATable
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from . import __version__
from .config import SoftDeleteConfig, get_config, parse_sentinel
from .soft_delete.policy import SentinelPolicy

console = Console()


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """SoftDelete Toolkit - sentinel-based soft deletion for SQLAlchemy."""
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]SoftDelete Toolkit[/bold blue] v{__version__}\n"
                "[dim]Sentinel-based soft deletion for SQLAlchemy models[/dim]\n\n"
                "Use [bold]softdelete --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Inspect toolkit configuration."""
    pass


def _render_config(config_dict: Dict[str, Any], format: str, title: str) -> None:
    if format == "json":
        console.print_json(data=config_dict, default=str)
    elif format == "yaml":
        console.print(yaml.safe_dump(config_dict, default_flow_style=False))
    else:
        table = Table(title=title, show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_column("Description", style="dim")

        for name, field_info in SoftDeleteConfig.model_fields.items():
            value = config_dict.get(name)
            if value is None:
                shown = "[dim]NULL[/dim]"
            elif isinstance(value, bool):
                shown = "✓" if value else "✗"
            elif isinstance(value, list):
                shown = ", ".join(value) or "[dim]none[/dim]"
            else:
                shown = str(value)
            table.add_row(name, shown, field_info.description or "")

        console.print(table)


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
@click.option(
    "--file",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="Show a configuration file instead of the active configuration",
)
def config_show(format: str, config_file: Optional[str]) -> None:
    """Display the active configuration."""
    try:
        if config_file:
            config = SoftDeleteConfig.from_file(config_file)
        else:
            config = get_config()
        _render_config(config.to_dict(), format, "SoftDelete Configuration")

    except (ValidationError, ValueError, OSError) as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str) -> None:
    """Validate a JSON or YAML configuration file."""
    try:
        config = SoftDeleteConfig.from_file(config_file)
    except ValidationError as e:
        console.print("[red]✗ Configuration validation failed:[/red]")
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "(root)"
            console.print(f"  [red]• {location}: {error['msg']}[/red]")
        sys.exit(1)
    except (ValueError, OSError, yaml.YAMLError) as e:
        console.print(f"[red]Error reading configuration: {e}[/red]")
        sys.exit(1)

    warnings = []
    if not config.install_default_scope:
        warnings.append(
            "Default scope disabled - deleted records appear in ordinary queries"
        )
    if config.default_sentinel_value is not None and not config.null_is_deleted:
        warnings.append(
            "NULL values are neither active nor deleted with null_is_deleted off"
        )

    console.print("[green]✓ Configuration is valid[/green]")

    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


@cli.command()
@click.argument("database_url", envvar="SOFTDELETE_DATABASE_URL")
@click.argument("table_name")
@click.option("--column", default=None, help="Deletion column (default from config)")
@click.option(
    "--sentinel",
    default=None,
    help="Value meaning 'not deleted', e.g. null, true or active",
)
@click.option(
    "--null-is-deleted/--no-null-is-deleted",
    default=None,
    help="Count NULL as deleted when the sentinel is not NULL",
)
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
def stats(
    database_url: str,
    table_name: str,
    column: Optional[str],
    sentinel: Optional[str],
    null_is_deleted: Optional[bool],
    format: str,
) -> None:
    """Count active and deleted rows of TABLE_NAME."""
    config = get_config()
    policy = SentinelPolicy(
        column=column or config.default_column,
        sentinel_value=(
            config.default_sentinel_value
            if sentinel is None
            else parse_sentinel(sentinel)
        ),
        null_is_deleted=(
            config.null_is_deleted if null_is_deleted is None else null_is_deleted
        ),
    )

    try:
        engine = create_engine(database_url)
        table = SATable(table_name, MetaData(), autoload_with=engine)
    except NoSuchTableError:
        console.print(f"[red]Error: table '{table_name}' not found[/red]")
        sys.exit(1)
    except SQLAlchemyError as e:
        console.print(f"[red]Error connecting to database: {e}[/red]")
        sys.exit(1)

    if policy.column not in table.c:
        console.print(
            f"[red]Error: table '{table_name}' has no column '{policy.column}'[/red]"
        )
        sys.exit(1)

    state_column = table.c[policy.column]
    counted = select(func.count()).select_from(table)
    with engine.connect() as conn:
        total = conn.execute(counted).scalar_one()
        active = conn.execute(
            counted.where(policy.active_clause(state_column))
        ).scalar_one()
        deleted = conn.execute(
            counted.where(policy.deleted_clause(state_column))
        ).scalar_one()
    engine.dispose()

    result = {
        "table": table_name,
        "column": policy.column,
        "sentinel": policy.sentinel_value,
        "total": total,
        "active": active,
        "deleted": deleted,
    }

    if format == "json":
        console.print_json(data=result, default=str)
        return

    summary = Table(title=f"Soft delete state of {table_name}", show_header=True)
    summary.add_column("State", style="cyan")
    summary.add_column("Rows", justify="right", style="green")
    summary.add_row("Active", str(active))
    summary.add_row("Deleted", str(deleted))
    summary.add_row("[bold]Total[/bold]", f"[bold]{total}[/bold]")
    console.print(summary)
    console.print(
        f"[dim]{policy.column} sentinel: {policy.sentinel_value!r}[/dim]"
    )

    unaccounted = total - active - deleted
    if unaccounted:
        console.print(
            f"[yellow]⚠ {unaccounted} rows hold NULL and are neither active "
            "nor deleted[/yellow]"
        )


if __name__ == "__main__":
    cli()
