"""Configuration CLI commands."""

import typer

from nexus.cli_commands import common
from nexus.config import get_settings

config_app = typer.Typer(
    name="config",
    help="Configuration management - view settings.",
    no_args_is_help=True,
)


@config_app.command()
def show(
    output_json: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output in JSON format",
    ),
) -> None:
    """Show current configuration."""
    settings = get_settings()

    config_data = {
        "base_url": settings.base_url,
        "sync_interval": settings.sync_interval,
        "max_backoff_interval": settings.max_backoff_interval,
        "burst_count": settings.burst_count,
        "burst_delay": settings.burst_delay,
        "status_timeout": settings.status_timeout,
        "update_timeout": settings.update_timeout,
        "aggressive_timeout": settings.aggressive_timeout,
        "data_dir": str(settings.data_path),
        "log_level": settings.log_level,
    }

    common.output(
        config_data,
        output_json,
        [
            "",
            "Nexus Configuration",
            "-------------------",
            f"Server URL: {settings.base_url}",
            f"Sync interval: {settings.sync_interval}s (backoff cap {settings.max_backoff_interval}s)",
            f"Burst: {settings.burst_count} posts, {settings.burst_delay}s apart",
            f"Timeouts: status {settings.status_timeout}s, update {settings.update_timeout}s, "
            f"aggressive {settings.aggressive_timeout}s",
            f"Data directory: {settings.data_path}",
            f"Log level: {settings.log_level}",
            "",
            "Set values using environment variables with NEXUS_ prefix",
            "Example: NEXUS_SYNC_INTERVAL=60",
        ],
    )
