from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import Settings, setup_logging
from .dash.discovery import DiscoveryError, list_services


app = typer.Typer(
    name="s6-dash",
    add_completion=False,
    help=(
        "Live terminal dashboard for an s6 scan directory.\n\n"
        "Usage:\n"
        "  s6-dash <directory>        Watch and control the services under <directory>\n\n"
        "Press ? inside the dashboard for key bindings."
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: Optional[bool]) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command()
def dash(
    directory: Path = typer.Argument(..., help="s6 scan directory holding service directories"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        is_eager=True,
        callback=_version_callback,
    ),
):
    """Open the dashboard over the services found in DIRECTORY."""
    settings = Settings.from_env()
    setup_logging(settings)
    try:
        services = list_services(directory)
    except DiscoveryError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1)

    # Lazy import to avoid importing Textual widgets before discovery succeeds
    from .dash.app import run_dash

    run_dash(root=directory, services=services, settings=settings)
