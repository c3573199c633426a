"""
Command-line interface for dpmm.

This module provides the command-line entry point for the dpmm declarative
package manager manager.
"""

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from dpmm_py import __version__
from dpmm_py.config import (
    INDEX_FILE,
    ConfigWriter,
    DpmmConfig,
    default_cache_dir,
    default_config_dir,
)
from dpmm_py.errors import DpmmError
from dpmm_py.executor import CommandExecutor
from dpmm_py.generation.store import FileGenerationStore
from dpmm_py.orchestrator import Orchestrator

# Set up the console and logger
console = Console()
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=console, rich_tracebacks=True)],
)
logger = logging.getLogger("dpmm")

# Create the Typer app
app = typer.Typer(
    help="Declarative package manager manager with generations and rollback.",
    add_completion=False,
)


@dataclass
class Settings:
    """Options from the global callback, shared by every command."""

    dry_run: bool
    config_dir: Path
    cache_dir: Path


def log_error(message: str) -> None:
    """Log an error message to both logger and console."""
    logger.error(message)
    console.print(f"[red]{escape(message)}[/red]")
    return None


def get_settings(ctx: typer.Context) -> Settings:
    settings = ctx.obj
    if not isinstance(settings, Settings):
        settings = Settings(
            dry_run=False,
            config_dir=default_config_dir(),
            cache_dir=default_cache_dir(),
        )
    return settings


def load_config(settings: Settings) -> Optional[DpmmConfig]:
    """Load the configuration, or exit with status 1 if it is broken.

    Returns None for an empty ``dpmm.yaml``, after telling the user.
    """
    try:
        config = DpmmConfig.load(settings.config_dir)
    except DpmmError as e:
        log_error(str(e))
        raise typer.Exit(1) from e

    if config.empty:
        console.print(f"Empty {INDEX_FILE}, terminating!")
        return None
    return config


def build_orchestrator(
    settings: Settings, config: Optional[DpmmConfig] = None
) -> Orchestrator:
    return Orchestrator(
        store=FileGenerationStore(settings.cache_dir),
        executor=CommandExecutor(dry_run=settings.dry_run, console=console),
        config=config,
        writer=ConfigWriter(settings.config_dir),
    )


@app.callback()
def callback(
    ctx: typer.Context,
    dry_run: bool = typer.Option(
        False, "--dry-run", "-d", help="Print commands and writes instead of running."
    ),
    config_dir: Optional[Path] = typer.Option(
        None,
        "--config-dir",
        help="Configuration directory. Uses DPMM_CONFIG_DIR or "
        "$XDG_CONFIG_HOME/dpmm if not specified.",
    ),
    cache_dir: Optional[Path] = typer.Option(
        None,
        "--cache-dir",
        help="Generation directory. Uses DPMM_CACHE_DIR or "
        "$XDG_CACHE_HOME/dpmm if not specified.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output."
    ),
    json_logs: bool = typer.Option(
        False, "--json", help="Output logs in JSON format."
    ),
    version: bool = typer.Option(
        False, "--version", help="Show the application version and exit."
    ),
) -> None:
    """
    dpmm: describe your packages once, switch and roll back between generations.
    """
    if version:
        console.print(f"dpmm version: {__version__}")
        raise typer.Exit()

    # Configure logging level based on verbosity
    if verbose:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    # Configure JSON logging if requested
    if json_logs:
        for handler in logging.root.handlers[:]:
            logging.root.removeHandler(handler)
        logging.basicConfig(
            level=logging.INFO if not verbose else logging.DEBUG,
            format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"message": "%(message)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stdout,
        )
        logger.debug("JSON logging enabled")

    ctx.obj = Settings(
        dry_run=dry_run,
        config_dir=config_dir.expanduser() if config_dir else default_config_dir(),
        cache_dir=cache_dir.expanduser() if cache_dir else default_cache_dir(),
    )
    logger.debug(f"Config directory: {ctx.obj.config_dir}")
    logger.debug(f"Cache directory: {ctx.obj.cache_dir}")


@app.command()
def switch(ctx: typer.Context) -> None:
    """
    Switch to the new configuration.
    """
    settings = get_settings(ctx)
    config = load_config(settings)
    if config is None:
        return

    orchestrator = build_orchestrator(settings, config)
    try:
        number = orchestrator.switch()
    except DpmmError as e:
        log_error(f"Switch failed: {e}")
        raise typer.Exit(1) from e

    if number is not None:
        console.print(f"Switched to generation {number}")


@app.command(name="list")
def list_generations(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False, "--json", help="Output generations in JSON format."
    ),
) -> None:
    """
    List dpmm generations.
    """
    settings = get_settings(ctx)
    entries = build_orchestrator(settings).list_generations()

    if not entries:
        logger.info("No generations found")
        return

    if json_output:
        generation_data = [
            {
                "generation": entry.number,
                "path": str(entry.path),
                "created": entry.created.isoformat(),
            }
            for entry in entries
        ]
        console.print(json.dumps(generation_data, indent=2))
    else:
        table = Table(title="Generations")
        table.add_column("Generation")
        table.add_column("Date")
        table.add_column("Time")

        for entry in entries:
            table.add_row(
                entry.path.stem,
                entry.created.date().isoformat(),
                entry.created.time().isoformat(timespec="seconds"),
            )
        console.print(table)


@app.command()
def rollback(
    ctx: typer.Context,
    generation: Optional[str] = typer.Argument(
        None,
        help="Generation to roll back to, e.g. 3 or generation_3. "
        "Defaults to the one before the latest.",
    ),
) -> None:
    """
    Roll back to a previous generation.
    """
    settings = get_settings(ctx)
    config = load_config(settings)
    if config is None:
        return

    orchestrator = build_orchestrator(settings, config)
    try:
        target = orchestrator.rollback(generation)
    except DpmmError as e:
        log_error(f"Rollback failed: {e}")
        raise typer.Exit(1) from e

    if not settings.dry_run:
        console.print(
            f"Rolled back to generation {target.number}. "
            "Run `dpmm switch` to record it as a new generation."
        )


def _maintenance(ctx: typer.Context, manager: str, action: str) -> None:
    settings = get_settings(ctx)
    config = load_config(settings)
    if config is None:
        return

    orchestrator = build_orchestrator(settings, config)
    try:
        getattr(orchestrator, action)(manager)
    except DpmmError as e:
        log_error(f"{action.capitalize()} failed: {e}")
        raise typer.Exit(1) from e


@app.command()
def update(
    ctx: typer.Context,
    manager: str = typer.Argument(
        ..., help="Manager to update, or `all` to update all managers."
    ),
) -> None:
    """
    Update package lists.
    """
    _maintenance(ctx, manager, "update")


@app.command()
def upgrade(
    ctx: typer.Context,
    manager: str = typer.Argument(
        ..., help="Manager to upgrade, or `all` to upgrade all managers."
    ),
) -> None:
    """
    Upgrade packages.
    """
    _maintenance(ctx, manager, "upgrade")


@app.command()
def gc(
    ctx: typer.Context,
    keep: Optional[int] = typer.Option(
        None,
        "--keep",
        "-k",
        min=1,
        help="Number of newest generations to keep. "
        "Uses retention.keep_last from dpmm.yaml if not specified.",
    ),
) -> None:
    """
    Delete old generations, always keeping the latest.
    """
    settings = get_settings(ctx)
    config = None
    if keep is None:
        config = load_config(settings)
        if config is None:
            return

    orchestrator = build_orchestrator(settings, config)
    try:
        deleted = orchestrator.gc(keep)
    except DpmmError as e:
        log_error(f"Garbage collection failed: {e}")
        raise typer.Exit(1) from e

    if not settings.dry_run:
        console.print(f"Deleted {len(deleted)} generations")


@app.command()
def version() -> None:
    """Show the application version and exit."""
    console.print(f"dpmm version: {__version__}")


if __name__ == "__main__":
    app()
