"""Session CLI commands: login, logout and status."""

import asyncio

import typer

from nexus.cli_commands import common
from nexus.config import Settings
from nexus.models import ApiResult
from nexus.session.store import FileSessionStore, load_session

JSON_OPTION = typer.Option(False, "--json", "-j", help="Output in JSON format")


async def _login(settings: Settings, token: str, deployment_code: str) -> ApiResult:
    agent = common.build_agent(settings)
    try:
        return await agent.login(token, deployment_code)
    finally:
        await agent.api.close()


async def _logout(settings: Settings) -> ApiResult:
    agent = common.build_agent(settings)
    try:
        return await agent.logout()
    finally:
        await agent.api.close()


async def _validate(settings: Settings, token: str, deployment_code: str) -> bool:
    agent = common.build_agent(settings)
    try:
        return await agent.validator.validate(token, deployment_code)
    finally:
        await agent.api.close()


def login_command(
    token: str = typer.Argument(..., help="Bearer token issued for this unit"),
    deployment_code: str = typer.Argument(..., help="Deployment code to join"),
    output_json: bool = JSON_OPTION,
) -> None:
    """Log this unit in and store the session locally."""
    settings = common.runtime_settings()
    result = asyncio.run(_login(settings, token, deployment_code))

    common.output(
        result.to_dict(),
        output_json,
        [f"Logged in to deployment {deployment_code}." if result.success else f"Login failed: {result.message}"],
    )
    if not result.success:
        raise typer.Exit(1)


def logout_command(output_json: bool = JSON_OPTION) -> None:
    """Log out remotely and clear the stored session."""
    settings = common.runtime_settings()
    result = asyncio.run(_logout(settings))

    common.output(
        result.to_dict(),
        output_json,
        ["Logged out." if result.success else f"Logged out locally ({result.message})."],
    )


def status_command(
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Skip the server session check",
    ),
    output_json: bool = JSON_OPTION,
) -> None:
    """Show stored session and agent state."""
    settings = common.runtime_settings()
    session = load_session(FileSessionStore(settings.session_file))
    pid = common.get_running_pid(settings.pid_file)

    session_valid: bool | None = None
    if session is not None and not offline:
        session_valid = asyncio.run(_validate(settings, session.token, session.deployment_code))

    status_data = {
        "running": pid is not None,
        "pid": pid,
        "logged_in": session is not None,
        "deployment_code": session.deployment_code if session else None,
        "session_valid": session_valid,
    }

    lines = ["", "Nexus Agent Status", "------------------"]
    lines.append(f"State: Running (PID: {pid})" if pid else "State: Not running")
    if session is None:
        lines.append("Session: None (run: nexus login TOKEN DEPLOYMENT_CODE)")
    else:
        lines.append(f"Deployment: {session.deployment_code}")
        if session_valid is not None:
            lines.append(f"Server session: {'valid' if session_valid else 'invalid'}")
    lines.append("")
    common.output(status_data, output_json, lines)
