"""Rich console helpers for CLI output."""

from rich.console import Console
from rich.panel import Panel

_console: Console | None = None


def get_console() -> Console:
    """Return the shared console instance."""
    global _console  # noqa: PLW0603
    if _console is None:
        _console = Console()
    return _console


def print_panel(content: str, title: str | None = None, style: str = "cyan") -> None:
    """Print content inside a bordered panel."""
    get_console().print(Panel(content, title=title, border_style=style))


def print_success(message: str) -> None:
    """Print a success message."""
    get_console().print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    get_console().print(f"[red]✗ Error:[/red] {message}")


def print_info(message: str) -> None:
    """Print an informational message."""
    get_console().print(f"[cyan]ℹ[/cyan] {message}")
