"""Helpers shared by the CLI command modules."""

import json
import os
from pathlib import Path

import typer

from nexus.config import Settings, get_settings
from nexus.engine.agent import TrackerAgent
from nexus.logging import setup_logging
from nexus.session.store import FileSessionStore


def output(data: dict | list, as_json: bool, human_lines: list[str]) -> None:
    """Output data as JSON or human-readable lines."""
    if as_json:
        typer.echo(json.dumps(data))
    else:
        for line in human_lines:
            typer.echo(line)


def runtime_settings() -> Settings:
    """Load settings and configure logging for a CLI run."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    return settings


def build_agent(settings: Settings) -> TrackerAgent:
    return TrackerAgent(settings, FileSessionStore(settings.session_file))


def get_running_pid(pid_file: Path) -> int | None:
    """Get the PID of the running agent, if any."""
    if not pid_file.exists():
        return None

    try:
        pid = int(pid_file.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, OSError):
        pid_file.unlink(missing_ok=True)
        return None


def write_pid(pid_file: Path) -> None:
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))
