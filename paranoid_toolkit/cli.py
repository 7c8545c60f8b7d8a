#!/usr/bin/env python3
"""
Command-line interface for Paranoid Python Toolkit.

Shows and validates the toolkit configuration and inspects the paranoid
types registered by an application's models module.
"""

import importlib
import sys
from typing import Any, Dict, List

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import get_config
from .soft_delete import ParanoidRegistry, get_registry
from .soft_delete.dependencies import relationship_dependencies
from .soft_delete.models import ColumnType

console = Console()


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Paranoid Python Toolkit - recoverable soft deletion for SQLAlchemy."""
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Paranoid Python Toolkit[/bold blue] v{__version__}\n"
                "[dim]Recoverable soft deletion for SQLAlchemy models[/dim]\n\n"
                "Use [bold]paranoid --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Manage toolkit configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    try:
        config = get_config()
        config_dict = config.to_dict()

        if format == "json":
            console.print_json(data=config_dict)
        elif format == "yaml":
            import yaml

            console.print(yaml.dump(config_dict, default_flow_style=False))
        else:
            table = Table(title="Paranoid Configuration", show_header=True)
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_column("Description", style="dim")

            for name, field_info in type(config).model_fields.items():
                value = config_dict[name]
                if isinstance(value, bool):
                    value = "✓" if value else "✗"
                table.add_row(name, str(value), field_info.description or "")

            console.print(table)

    except Exception as e:
        console.print(f"[red]Error loading configuration: {e}[/red]")
        sys.exit(1)


@config.command("validate")
def config_validate() -> None:
    """Validate current configuration."""
    try:
        config = get_config()
    except Exception as e:
        console.print("[red]✗ Configuration validation failed:[/red]")
        console.print(f"  [red]• {e}[/red]")
        sys.exit(1)

    warnings = []

    if config.recovery_window_seconds == 0:
        warnings.append(
            "Recovery window is zero - time-based cascades will recover nothing"
        )

    if not config.install_default_scope:
        warnings.append(
            "Default scope disabled - deleted rows appear in ordinary queries"
        )

    if config.default_column_type == ColumnType.BOOLEAN:
        warnings.append(
            "Boolean default column - only non-nullable columns treat False as deleted"
        )

    console.print("[green]✓ Configuration is valid[/green]")
    if warnings:
        console.print("\n[yellow]⚠ Warnings:[/yellow]")
        for warning in warnings:
            console.print(f"  [yellow]• {warning}[/yellow]")


def describe_types(registry: ParanoidRegistry) -> List[Dict[str, Any]]:
    """Summarise registered types and their dependency declarations."""
    types = []
    for entity_class, options in registry.registered_types():
        dependencies = [
            {"name": dep.name, "policy": dep.policy.value, "kind": "relationship"}
            for dep in relationship_dependencies(entity_class)
        ]
        dependencies.extend(
            {"name": dep.name, "policy": dep.policy.value, "kind": "polymorphic"}
            for dep in registry.polymorphic_dependencies(entity_class)
        )
        types.append(
            {
                "type": entity_class.__name__,
                "column": options.column,
                "column_type": options.column_type.value,
                "deleted_value": options.deleted_value,
                "allow_nulls": options.allow_nulls,
                "recursive": options.recursive,
                "recovery_window_seconds": int(
                    options.recovery_window.total_seconds()
                ),
                "dependencies": dependencies,
            }
        )
    return types


@cli.command("types")
@click.argument("module")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
def types(module: str, format: str) -> None:
    """List paranoid types registered by MODULE."""
    try:
        importlib.import_module(module)
    except ImportError as e:
        console.print(f"[red]Error importing {module}: {e}[/red]")
        sys.exit(1)

    summary = describe_types(get_registry())

    if format == "json":
        console.print_json(data=summary)
        return

    if not summary:
        console.print("[yellow]No paranoid types registered[/yellow]")
        return

    table = Table(title="Paranoid Types", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Column", style="green")
    table.add_column("Marker")
    table.add_column("Recursive")
    table.add_column("Window (s)")
    table.add_column("Dependents", style="dim")

    for item in summary:
        marker = item["column_type"]
        if item["deleted_value"] is not None:
            marker = f"{marker} = {item['deleted_value']!r}"
        elif not item["allow_nulls"]:
            marker = f"{marker}, not null"
        dependents = ", ".join(
            f"{dep['name']} ({dep['policy']})" for dep in item["dependencies"]
        )
        table.add_row(
            item["type"],
            item["column"],
            marker,
            "✓" if item["recursive"] else "✗",
            str(item["recovery_window_seconds"]),
            dependents or "-",
        )

    console.print(table)


if __name__ == "__main__":
    cli()
