"""Nexus CLI - Command-line interface for the tracking agent."""

import typer

from nexus import __version__
from nexus.cli_commands import (
    burst_command,
    config_app,
    login_command,
    logout_command,
    start_command,
    status_command,
)

app = typer.Typer(
    name="nexus",
    help="Nexus Agent - background location reporting for deployment tracking.",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"nexus-agent {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Nexus Agent - background location reporting."""
    pass


app.command(name="login")(login_command)
app.command(name="logout")(logout_command)
app.command(name="status")(status_command)
app.command(name="start")(start_command)
app.command(name="burst")(burst_command)


if __name__ == "__main__":
    app()
