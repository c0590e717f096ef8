"""CLI command modules for the Nexus agent."""

from nexus.cli_commands.config import config_app
from nexus.cli_commands.session import login_command, logout_command, status_command
from nexus.cli_commands.sync import burst_command, start_command

__all__ = [
    "burst_command",
    "config_app",
    "login_command",
    "logout_command",
    "start_command",
    "status_command",
]
