"""Command-line entry point for ralph-dashboard.

Example:
    $ ralph-dashboard serve
    $ ralph-dashboard serve --project ~/my-project --port 4000 -v
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from ralph_dashboard import __version__
from ralph_dashboard.core.config import load_project_config
from ralph_dashboard.core.exceptions import ConfigError

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ralph-dashboard",
    help="Live dashboard for a supervised Ralph loop",
    no_args_is_help=True,
)

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ralph-dashboard {__version__}")
        raise typer.Exit(code=EXIT_SUCCESS)


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Live dashboard for a supervised Ralph loop."""


@app.command(name="serve")
def serve_command(
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Path to project directory (default: current directory)",
    ),
    host: str | None = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Port (default from config)"),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to ralph-dashboard.yaml (default: <project>/ralph-dashboard.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Serve the dashboard for a project directory.

    Exits with code 0 on clean shutdown, 1 if the project directory is
    invalid, 2 on configuration errors.
    """
    from ralph_dashboard.server import DashboardServer

    _setup_logging(verbose)
    project_path = project.resolve()

    if not project_path.exists():
        console.print(f"[red]Error:[/red] Directory does not exist: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)

    if not project_path.is_dir():
        console.print(f"[red]Error:[/red] Not a directory: {project_path}")
        raise typer.Exit(code=EXIT_ERROR)

    try:
        dashboard_config = load_project_config(project_path, config)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None

    server = DashboardServer(project_path, dashboard_config)
    try:
        server.run(host=host, port=port, log_level="debug" if verbose else "info")
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=EXIT_ERROR) from None

    logger.debug("Dashboard exited")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
