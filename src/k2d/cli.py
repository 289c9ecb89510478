"""Main CLI entry point for k2d."""

import sys
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from k2d import __version__
from k2d.bootstrap import initialize_meta_directory, is_meta_initialized
from k2d.config.paths import DB_FILENAME, META_DIR
from k2d.constants import CONFIG_KEY_INITIALIZED_AT, CONFIG_KEY_TRACKING_MODE
from k2d.exceptions import K2DError
from k2d.extractors.phase_inference import get_phase_description
from k2d.hooks.turn_end import ensure_store_initialized, handle_hook
from k2d.store import K2DStore
from k2d.utils import print_error, print_info, print_panel, print_success
from k2d.utils.logging import configure_logging

# Load .env file from current directory if it exists
load_dotenv(Path.cwd() / ".env", verbose=False)

app = typer.Typer(
    name="k2d",
    help="Capture agent conversation turns into a local knowledge store.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()

# Rows shown in the status tables
STATUS_TOP_TOOLS = 10


@app.command("hook")
def hook(
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Override the log level for this run (DEBUG, INFO, WARNING, ERROR)",
    ),
) -> None:
    """Handle the agent's Stop hook.

    Reads the hook payload from stdin, captures the latest turn of the
    transcript into meta/k2d.db and prints a JSON result. Failures are
    reported in the result and never change the exit status.

    Example:
        echo '{"transcript_path": "/path/to/session.jsonl"}' | k2d hook
    """
    raw_input = sys.stdin.read()
    output = handle_hook(raw_input, Path.cwd(), log_level=log_level)
    typer.echo(output.to_json())


@app.command("init")
def init() -> None:
    """Initialize k2d in the current project.

    Creates the meta/ directory tree and the database, and records whether
    file changes are tracked through git or through content snapshots.
    """
    project_root = Path.cwd()
    meta_dir = initialize_meta_directory(project_root)
    configure_logging(meta_dir)

    try:
        with K2DStore(meta_dir / DB_FILENAME) as store:
            created = ensure_store_initialized(store, project_root)
            tracking_mode = store.get_config(CONFIG_KEY_TRACKING_MODE)
            tables = store.get_all_tables()
    except K2DError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if created:
        print_success("k2d initialized")
    else:
        print_info("k2d was already initialized")
    print_panel(
        f"Meta directory: [bold]{meta_dir}[/bold]\n"
        f"Database: [bold]{meta_dir / DB_FILENAME}[/bold] ({len(tables)} tables)\n"
        f"Tracking mode: [green]{tracking_mode}[/green]",
        title="k2d",
        style="cyan",
    )


@app.command("status")
def status() -> None:
    """Show what has been captured for the current project."""
    project_root = Path.cwd()
    db_path = project_root / META_DIR / DB_FILENAME
    if not is_meta_initialized(project_root) or not db_path.exists():
        print_error("k2d is not initialized here. Run 'k2d init' first.")
        raise typer.Exit(code=1)

    try:
        with K2DStore(db_path) as store:
            tracking_mode = store.get_config(CONFIG_KEY_TRACKING_MODE) or "-"
            initialized_at = store.get_config(CONFIG_KEY_INITIALIZED_AT) or "-"
            stats = store.get_stats()
            tool_stats = store.get_tool_call_stats()[:STATUS_TOP_TOOLS]
            lifecycles = store.list_skill_lifecycles()
            open_phase = store.get_open_phase()
    except K2DError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    overview = Table(title="k2d status", show_header=False)
    overview.add_column("Key", style="cyan", no_wrap=True)
    overview.add_column("Value")
    overview.add_row("Tracking mode", tracking_mode)
    overview.add_row("Initialized", initialized_at)
    for table_name, count in stats.items():
        overview.add_row(table_name.replace("_", " ").capitalize(), str(count))
    if open_phase is not None:
        overview.add_row(
            "Current phase",
            f"{open_phase.phase_name} - {get_phase_description(open_phase.phase_name)}",
        )
    console.print(overview)

    if tool_stats:
        tools = Table(title="Top tools")
        tools.add_column("Tool", style="cyan", no_wrap=True)
        tools.add_column("Calls", justify="right")
        for stat in tool_stats:
            tools.add_row(stat.tool_name, str(stat.count))
        console.print(tools)

    if lifecycles:
        skills = Table(title="Skills")
        skills.add_column("Skill", style="cyan", no_wrap=True)
        skills.add_column("Uses", justify="right")
        skills.add_column("Active")
        skills.add_column("Introduced because")
        for item in lifecycles:
            skills.add_row(
                item.skill_name,
                str(item.total_usages),
                "yes" if item.is_active else "no",
                item.introduction_reason or "",
            )
        console.print(skills)


@app.command("version")
def version() -> None:
    """Show version information."""
    print_panel(
        f"[bold cyan]k2d[/bold cyan] version [green]{__version__}[/green]",
        title="Version",
        style="cyan",
    )


if __name__ == "__main__":
    app()
