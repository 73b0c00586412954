"""CLI for inspecting the resource catalog and browsing collections.

Usage:
    resource-console resources
    resource-console describe doctors
    resource-console list drugs --page 2 --page-size 20 --keyword aspirin
    MED_CONSOLE_TOKEN=... resource-console --env-prefix MED_ list system-users

Commands:
    resources - List registered resources
    describe  - Show the form fields and columns of one resource
    list      - Fetch one page of a resource and render its columns
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from resource_console.config.loader import apply_env_overrides, load_console_config
from resource_console.config.models import ConsoleConfig
from resource_console.descriptors.loader import load_registry
from resource_console.descriptors.registry import ResourceRegistry
from resource_console.errors import ConsoleError, DescriptorError, ResourceNotFoundError
from resource_console.factory import create_console

console = Console()


def _load_config(args: argparse.Namespace) -> ConsoleConfig:
    """Config from ``--config`` if given, else console.toml in the cwd, else defaults."""
    env_prefix = getattr(args, "env_prefix", "")
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_console_config(config_path, env_prefix=env_prefix)
    except FileNotFoundError:
        if config_path is not None:
            raise
        return apply_env_overrides(ConsoleConfig(), env_prefix)


def _load_catalog(args: argparse.Namespace) -> ResourceRegistry:
    config = _load_config(args)
    return load_registry(Path(config.catalog) if config.catalog else None)


# ============================================================================
# Commands
# ============================================================================


def cmd_resources(args: argparse.Namespace) -> int:
    """List registered resources.

    Reads only local files -- no backend calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if the config or catalog cannot be loaded.
    """
    try:
        registry = _load_catalog(args)
    except (FileNotFoundError, DescriptorError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Resources", show_header=True, header_style="bold")
    table.add_column("Key", style="cyan")
    table.add_column("Title")
    table.add_column("Endpoint")
    table.add_column("Fields", justify="right")
    table.add_column("Access")

    for descriptor in registry:
        if descriptor.is_read_only:
            access = "[yellow]read-only[/yellow]"
        elif not descriptor.can_create:
            access = "edit"
        else:
            access = "create/edit"
        table.add_row(
            descriptor.key,
            descriptor.title,
            descriptor.base_path,
            str(len(descriptor.form_fields)),
            access,
        )

    console.print(table)
    return 0


def cmd_describe(args: argparse.Namespace) -> int:
    """Show the form fields and columns of one resource.

    Args:
        args: Parsed arguments with ``key``.

    Returns:
        0 on success, 1 if the resource is unknown.
    """
    try:
        descriptor = _load_catalog(args).get(args.key)
    except (FileNotFoundError, DescriptorError, ResourceNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(
        f"[bold]{descriptor.title}[/bold] [dim]({descriptor.key})[/dim] "
        f"-> [cyan]{descriptor.base_path}[/cyan]"
    )
    if descriptor.default_params:
        params = ", ".join(f"{k}={v}" for k, v in descriptor.default_params.items())
        console.print(f"  Default filters: {params}")
    if descriptor.submit_hook:
        console.print(f"  Submit hook: {descriptor.submit_hook}")

    if descriptor.form_fields:
        fields = Table(title="Form fields", show_header=True, header_style="bold")
        fields.add_column("Name", style="cyan")
        fields.add_column("Label")
        fields.add_column("Component")
        fields.add_column("Rules")
        fields.add_column("Source")

        for field in descriptor.form_fields:
            source = field.load_options_from or ""
            if field.is_dependent:
                source = f"{field.dependent_path} (on {field.depends_on})"
            name = f"[dim]{field.name}[/dim]" if field.hidden else field.name
            fields.add_row(
                name,
                field.label,
                field.component,
                ", ".join(rule.kind for rule in field.rules),
                source,
            )
        console.print(fields)
    else:
        console.print("  [yellow]No form fields (read-only)[/yellow]")

    columns = Table(title="Columns", show_header=True, header_style="bold")
    columns.add_column("Title")
    columns.add_column("Path", style="cyan")
    columns.add_column("Type")
    for column in descriptor.columns:
        columns.add_row(column.title, ".".join(column.path), column.value_type)
    console.print(columns)
    return 0


async def _async_list(args: argparse.Namespace) -> int:
    """Async implementation for list command.

    Args:
        args: Parsed arguments with key, page, page_size, keyword, env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    env_prefix = getattr(args, "env_prefix", "")
    try:
        app = create_console(
            config=_load_config(args),
            env_prefix=env_prefix,
        )
    except (FileNotFoundError, DescriptorError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        try:
            listing = app.list_controller(args.key, page_size=args.page_size)
        except ResourceNotFoundError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

        state = await listing.load(page=args.page, keyword=args.keyword)
        if state.error:
            console.print(f"[bold red]x[/bold red] {state.error}")
            return 1

        table = Table(
            title=f"{listing.descriptor.title} (page {state.page}, {state.total} total)",
            show_header=True,
            header_style="bold",
        )
        for column in listing.descriptor.columns:
            table.add_column(column.title)
        for row in listing.rows():
            table.add_row(*row.values())

        console.print(table)
        if not state.items:
            console.print("[dim]No records.[/dim]")
        return 0
    finally:
        await app.close()


def cmd_list(args: argparse.Namespace) -> int:
    """Fetch one page of a resource and render its columns.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        return asyncio.run(_async_list(args))
    except ConsoleError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        return 1


# ============================================================================
# Main entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="resource-console",
        description="Inspect the resource catalog and browse backend collections",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to console.toml (default: ./console.toml, else built-in defaults)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix MED_ reads MED_CONSOLE_TOKEN)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log requests and engine decisions",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # resources command
    p_resources = subparsers.add_parser(
        "resources",
        help="List registered resources",
    )
    p_resources.set_defaults(func=cmd_resources)

    # describe command
    p_describe = subparsers.add_parser(
        "describe",
        help="Show the form fields and columns of one resource",
    )
    p_describe.add_argument("key", help="Resource key (e.g., doctors)")
    p_describe.set_defaults(func=cmd_describe)

    # list command
    p_list = subparsers.add_parser(
        "list",
        help="Fetch one page of a resource",
    )
    p_list.add_argument("key", help="Resource key (e.g., drugs)")
    p_list.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    p_list.add_argument(
        "--page-size", type=int, default=10, help="Items per page (default: 10)"
    )
    p_list.add_argument("--keyword", default=None, help="Search keyword")
    p_list.set_defaults(func=cmd_list)

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
