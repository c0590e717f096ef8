"""Tests for JSON log formatting and audit events."""

import json
import logging

import pytest

from nexus import __version__
from nexus.errors import (
    AuthError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
    describe_error,
    error_for_status,
)
from nexus.logging import (
    NexusJsonFormatter,
    get_logger,
    log_burst_completed,
    log_session_cleared,
    log_sync_result,
    set_agent_id,
    setup_logging,
)
from nexus.models import ApiResult


def _format(record: logging.LogRecord) -> dict:
    return json.loads(NexusJsonFormatter().format(record))


@pytest.fixture(autouse=True)
def _reset_agent_id():
    set_agent_id(None)
    yield
    set_agent_id(None)


class TestFormatter:
    def test_standard_fields(self):
        record = logging.LogRecord("nexus.sync", logging.INFO, __file__, 1, "hello %s", ("world",), None)

        data = _format(record)

        assert data["message"] == "hello world"
        assert data["level"] == "INFO"
        assert data["logger"] == "nexus.sync"
        assert data["agent_version"] == __version__
        assert data["timestamp"].endswith("+00:00")
        assert "agent_id" not in data

    def test_agent_id_once_known(self):
        set_agent_id("D1")
        record = logging.LogRecord("nexus", logging.INFO, __file__, 1, "armed", (), None)

        assert _format(record)["agent_id"] == "D1"

    def test_setup_writes_json_file(self, tmp_path):
        log_file = tmp_path / "logs" / "agent.log"
        setup_logging("INFO", log_file=log_file, agent_id="D7")
        try:
            logging.getLogger("nexus.test").info("file entry", extra={"event": "heartbeat"})
            for handler in logging.getLogger().handlers:
                handler.flush()

            line = log_file.read_text().strip().splitlines()[-1]
            data = json.loads(line)
            assert data["event"] == "heartbeat"
            assert data["agent_id"] == "D7"
        finally:
            for handler in logging.getLogger().handlers[:]:
                logging.getLogger().removeHandler(handler)
                handler.close()


class TestAuditEvents:
    def test_sync_succeeded(self, caplog):
        logger = logging.getLogger("nexus.audit")
        with caplog.at_level(logging.INFO, logger="nexus.audit"):
            log_sync_result(logger, "aggressive", "heartbeat", ApiResult(True, "ok"), attempt=2)

        record = caplog.records[-1]
        assert record.event == "sync_succeeded"
        assert record.sync_type == "aggressive"
        assert record.kind == "heartbeat"
        assert record.attempt == 2

    def test_sync_failed_carries_error(self, caplog):
        logger = logging.getLogger("nexus.audit")
        with caplog.at_level(logging.INFO, logger="nexus.audit"):
            log_sync_result(logger, "normal", "location", ApiResult.error("Request timed out"))

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.event == "sync_failed"
        assert record.error == "Request timed out"
        assert not hasattr(record, "attempt")

    def test_burst_and_session_events(self, caplog):
        logger = logging.getLogger("nexus.audit")
        with caplog.at_level(logging.INFO, logger="nexus.audit"):
            log_burst_completed(logger, 2, 3)
            log_session_cleared(logger, "logout")

        burst, cleared = caplog.records[-2:]
        assert (burst.event, burst.successes, burst.total) == ("burst_completed", 2, 3)
        assert (cleared.event, cleared.reason) == ("session_cleared", "logout")


class TestErrors:
    @pytest.mark.parametrize(
        "status,expected",
        [(200, None), (204, None), (401, AuthError), (403, AuthError), (404, ServerError), (500, ServerError)],
    )
    def test_error_for_status(self, status, expected):
        error = error_for_status(status)

        if expected is None:
            assert error is None
        else:
            assert isinstance(error, expected)
            assert error.status_code == status

    @pytest.mark.parametrize(
        "exc,message",
        [
            (RequestTimeoutError(), "Request timed out"),
            (NetworkError("Connection refused"), "Connection refused"),
            (TimeoutError(), "Request timed out"),
            (ConnectionResetError(), "Unable to reach the server. Check your connection."),
            (ValueError("bad json"), "Invalid response format from server"),
        ],
    )
    def test_describe_error(self, exc, message):
        assert describe_error(exc) == message

    def test_describe_unknown_error(self):
        assert "KeyError" in describe_error(KeyError("x"))


def test_get_logger_is_cached():
    assert get_logger("nexus.sync") is get_logger("nexus.sync")
    assert get_logger("nexus.sync").name == "nexus.sync"
