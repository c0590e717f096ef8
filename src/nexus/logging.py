"""Structured JSON logging for the Nexus agent.

Provides audit-friendly logging with contextual fields for sync posts,
scheduler state changes and session events. Tokens are never logged.

Usage:
    from nexus.logging import setup_logging, get_logger

    setup_logging("INFO")
    log = get_logger("nexus.sync")
    log.info("sync_succeeded", extra={"sync_type": "normal"})
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

from pythonjsonlogger import jsonlogger

from nexus import __version__

if TYPE_CHECKING:
    from nexus.models import ApiResult

AGENT_VERSION = __version__

# Deployment code of the armed session, once known
_agent_id: str | None = None


class NexusJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that adds agent context to all log records."""

    def add_fields(
        self,
        log_record: dict,
        record: logging.LogRecord,
        message_dict: dict,
    ) -> None:
        """Add standard fields to every log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        log_record["agent_version"] = AGENT_VERSION
        if _agent_id:
            log_record["agent_id"] = _agent_id

        if "message" not in log_record and record.getMessage():
            log_record["message"] = record.getMessage()

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        """Format time as ISO 8601."""
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return dt.isoformat()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    agent_id: str | None = None,
    max_bytes: int = 5_000_000,
    backup_count: int = 3,
) -> None:
    """Configure root logger with JSON formatting.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path for rotating file handler
        agent_id: Identifier for this agent instance (the deployment code)
        max_bytes: Max size per log file for rotation
        backup_count: Number of backup files to keep
    """
    global _agent_id
    if agent_id:
        _agent_id = agent_id

    formatter = NexusJsonFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


@lru_cache(maxsize=32)
def get_logger(name: str) -> logging.Logger:
    """Get a named logger with agent context."""
    return logging.getLogger(name)


def set_agent_id(agent_id: str | None) -> None:
    """Set the agent identifier for log context."""
    global _agent_id
    _agent_id = agent_id


# --- Audit Event Functions ---


def log_sync_result(
    logger: logging.Logger,
    sync_type: str,
    kind: str,
    result: ApiResult,
    attempt: int | None = None,
) -> None:
    """Log the outcome of one location or heartbeat post.

    Args:
        logger: Logger instance
        sync_type: normal or aggressive
        kind: location or heartbeat
        result: ApiResult returned by the client
        attempt: Position within a burst, if any
    """
    extra = {
        "event": "sync_succeeded" if result.success else "sync_failed",
        "sync_type": sync_type,
        "kind": kind,
    }
    if attempt is not None:
        extra["attempt"] = attempt
    if result.success:
        logger.info("Sync post succeeded", extra=extra)
    else:
        extra["error"] = result.message
        logger.warning("Sync post failed", extra=extra)


def log_state_change(
    logger: logging.Logger,
    old_state: str,
    new_state: str,
    trigger: str | None = None,
) -> None:
    """Log a scheduler state transition."""
    extra = {
        "event": "state_change",
        "old_state": old_state,
        "new_state": new_state,
    }
    if trigger:
        extra["trigger"] = trigger
    logger.debug("State changed", extra=extra)


def log_burst_completed(logger: logging.Logger, successes: int, total: int) -> None:
    logger.info(
        "Aggressive sync burst completed",
        extra={"event": "burst_completed", "successes": successes, "total": total},
    )


def log_session_cleared(logger: logging.Logger, reason: str) -> None:
    logger.info(
        "Stored session cleared",
        extra={"event": "session_cleared", "reason": reason},
    )
