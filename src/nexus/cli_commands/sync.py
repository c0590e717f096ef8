"""Sync CLI commands: run the agent and trigger an aggressive burst."""

import asyncio
import contextlib
import signal

import typer

from nexus.cli_commands import common
from nexus.config import Settings
from nexus.models import ApiResult
from nexus.session.router import StartupDecision
from nexus.session.store import load_session

JSON_OPTION = typer.Option(False, "--json", "-j", help="Output in JSON format")


async def _run_agent(settings: Settings) -> StartupDecision:
    agent = common.build_agent(settings)
    decision = await agent.start()
    if decision is not StartupDecision.RESUME:
        await agent.stop()
        return decision

    loop = asyncio.get_running_loop()
    # SIGUSR1 stands in for the platform's task-removed event
    with contextlib.suppress(NotImplementedError, AttributeError):
        loop.add_signal_handler(signal.SIGUSR1, agent.task_removed)
        loop.add_signal_handler(signal.SIGINT, agent.scheduler.stop)
        loop.add_signal_handler(signal.SIGTERM, agent.scheduler.stop)

    try:
        await agent.wait()
        await agent.scheduler.wait_for_burst()
    finally:
        await agent.stop()
    return decision


async def _burst(settings: Settings, count: int | None) -> list[ApiResult] | None:
    agent = common.build_agent(settings)
    try:
        session = load_session(agent.store)
        if session is None:
            return None
        agent.scheduler.arm(session)
        return await agent.scheduler.send_aggressive_sync_burst(count)
    finally:
        await agent.api.close()


def start_command(
    interval: int = typer.Option(
        None,
        "--interval",
        "-i",
        min=1,
        help="Sync interval in seconds (default: from config)",
    ),
    output_json: bool = JSON_OPTION,
) -> None:
    """Run the tracking agent in the foreground.

    Validates the stored session, then posts location on every tick until
    interrupted. Send SIGUSR1 to trigger an aggressive sync burst.
    """
    settings = common.runtime_settings()
    if interval:
        settings = settings.model_copy(
            update={
                "sync_interval": interval,
                "max_backoff_interval": max(interval, settings.max_backoff_interval),
            }
        )

    existing_pid = common.get_running_pid(settings.pid_file)
    if existing_pid:
        common.output(
            {"status": "error", "message": "Agent already running", "pid": existing_pid},
            output_json,
            [f"Agent already running (PID: {existing_pid})."],
        )
        raise typer.Exit(1)

    common.output(
        {"status": "starting", "interval": settings.sync_interval},
        output_json,
        [f"Starting Nexus agent (interval: {settings.sync_interval}s)..."],
    )
    common.write_pid(settings.pid_file)
    try:
        decision = asyncio.run(_run_agent(settings))
    finally:
        settings.pid_file.unlink(missing_ok=True)

    if decision is StartupDecision.RESUME:
        common.output({"status": "stopped"}, output_json, ["Nexus agent stopped."])
        return

    message = {
        StartupDecision.LOGIN: "No valid session. Run: nexus login TOKEN DEPLOYMENT_CODE",
        StartupDecision.PERMISSIONS: "Location permissions are required before tracking can start.",
    }[decision]
    common.output(
        {"status": "not_started", "decision": decision.value, "message": message},
        output_json,
        [message],
    )
    raise typer.Exit(1)


def burst_command(
    count: int = typer.Option(
        None,
        "--count",
        "-c",
        min=1,
        help="Number of aggressive posts (default: from config)",
    ),
    output_json: bool = JSON_OPTION,
) -> None:
    """Send an aggressive sync burst now using the stored session."""
    settings = common.runtime_settings()
    results = asyncio.run(_burst(settings, count))

    if results is None:
        common.output(
            {"status": "error", "message": "No stored session"},
            output_json,
            ["No stored session. Run: nexus login TOKEN DEPLOYMENT_CODE"],
        )
        raise typer.Exit(1)

    successes = sum(1 for r in results if r.success)
    lines = [
        f"Sync {i}/{len(results)}: {'OK' if r.success else 'FAILED - ' + r.message}"
        for i, r in enumerate(results, start=1)
    ]
    lines.append(f"Burst completed: {successes}/{len(results)} successful")
    common.output(
        {"successes": successes, "results": [r.to_dict() for r in results]},
        output_json,
        lines,
    )
