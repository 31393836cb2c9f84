"""CLI entry point for Doc-Agent.

The CLI inspects and maintains the history and recipes persisted under
the configured storage directory (default: $XDG_DATA_HOME/doc-agent).
Planning and applying happen through AgentSession in the host application.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from doc_agent import __version__
from doc_agent.audit.exporter import AuditExporter
from doc_agent.config.loader import ConfigLoader
from doc_agent.config.models import AgentConfig
from doc_agent.core.errors import DocAgentError
from doc_agent.core.logging import get_logger, setup_logging
from doc_agent.planning.interpreter import EXAMPLE_COMMANDS
from doc_agent.storage.backend import JsonFileStore
from doc_agent.storage.operations import OperationStore
from doc_agent.storage.recipes import RecipeStore

logger = get_logger("cli")

COMMANDS = ("history", "export", "recipes", "clear", "examples")


def print_help(console: Console) -> None:
    console.print(
        f"""[bold]doc-agent[/bold] {__version__}

Usage: doc-agent <command> [options]

Commands:
  history                 List applied operations, newest first
  export [-o FILE]        Print the audit log as JSON, or write it to FILE
  recipes                 List saved recipes
  recipes delete <id>     Delete a recipe
  clear                   Clear the operation history
  examples                Show example editing commands

Options:
  -h, --help              Show this help
  -v, --version           Show the version

Configuration is read from ~/.doc-agent/settings.yaml, ./.doc-agent/settings.yaml
and DOC_AGENT_* environment variables.""",
        highlight=False,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the doc-agent CLI.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    args = sys.argv[1:] if argv is None else argv
    console = Console()
    err_console = Console(stderr=True)

    if "--version" in args or "-v" in args:
        console.print(f"doc-agent {__version__}", highlight=False)
        return 0

    if not args or "--help" in args or "-h" in args:
        print_help(console)
        return 0

    command, rest = args[0], args[1:]
    if command not in COMMANDS:
        err_console.print(f"[red]Error:[/red] Unknown command '{command}'")
        err_console.print("Run 'doc-agent --help' for usage information")
        return 1

    try:
        config = ConfigLoader().load_all()
    except DocAgentError as e:
        err_console.print(f"[red]Error:[/red] Failed to load configuration: {e}")
        return 1

    setup_logging(config.logging.level, log_file=config.logging.file, console_output=False)

    try:
        return asyncio.run(run_command(command, rest, config, console))
    except DocAgentError as e:
        logger.error(f"Command {command} failed: {e}")
        err_console.print(f"[red]Error:[/red] {e}")
        return 1
    except KeyboardInterrupt:
        err_console.print("\nInterrupted")
        return 130


async def run_command(command: str, args: list[str], config: AgentConfig, console: Console) -> int:
    """Dispatch a parsed command."""
    if command == "examples":
        return show_examples(console)

    backend = JsonFileStore(config.history.storage_dir)
    if command == "recipes":
        recipes = RecipeStore(backend)
        try:
            return await manage_recipes(recipes, args, console)
        finally:
            recipes.close()

    store = OperationStore(backend, max_entries=config.history.max_operations)
    try:
        if command == "history":
            return await show_history(store, console)
        if command == "export":
            return await export_history(store, args, console)
        count = await store.clear()
        console.print(f"Cleared {count} operation(s)")
        return 0
    finally:
        store.close()


async def show_history(store: OperationStore, console: Console) -> int:
    entries = await AuditExporter(store).history()
    if not entries:
        console.print("No operations recorded")
        return 0

    table = Table(title="Operation history")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Command")
    table.add_column("Scope")
    table.add_column("Steps", justify="right")
    table.add_column("Status")
    table.add_column("When")

    for entry in entries:
        status = f"{entry.status} (reverted)" if entry.reverted else entry.status
        table.add_row(
            entry.id,
            entry.command,
            str(entry.scope),
            str(entry.step_count),
            status,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)
    return 0


async def export_history(store: OperationStore, args: list[str], console: Console) -> int:
    exporter = AuditExporter(store)
    if args and args[0] in ("-o", "--output"):
        if len(args) < 2:
            console.print("[red]Error:[/red] -o requires a file name")
            return 1
        target = await exporter.write(Path(args[1]))
        console.print(f"Audit log written to {target}")
        return 0
    if args:
        console.print(f"[red]Error:[/red] Unexpected argument '{args[0]}'")
        return 1
    console.print_json(await exporter.export())
    return 0


async def manage_recipes(recipes: RecipeStore, args: list[str], console: Console) -> int:
    if args[:1] == ["delete"]:
        if len(args) != 2:
            console.print("[red]Error:[/red] Usage: doc-agent recipes delete <id>")
            return 1
        if not await recipes.delete(args[1]):
            console.print(f"[red]Error:[/red] Recipe not found: {args[1]}")
            return 1
        console.print(f"Deleted recipe {args[1]}")
        return 0
    if args:
        console.print(f"[red]Error:[/red] Unknown recipes subcommand '{args[0]}'")
        return 1

    saved = await recipes.list()
    if not saved:
        console.print("No recipes saved")
        return 0

    table = Table(title="Recipes")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Template")
    table.add_column("Tags")
    table.add_column("Used", justify="right")
    for recipe in saved:
        table.add_row(recipe.id, recipe.name, recipe.template, ", ".join(recipe.tags), str(recipe.usage_count))
    console.print(table)
    return 0


def show_examples(console: Console) -> int:
    for example in EXAMPLE_COMMANDS:
        console.print(f"[bold]{example.description}[/bold]")
        console.print(f"  {example.text}", highlight=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
