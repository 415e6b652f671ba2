"""Unit tests for the structured logging configuration.

The root handler's stream is pointed at a buffer so the rendered JSON
lines can be inspected exactly as a log shipper would receive them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from io import StringIO
from typing import Any

import pytest
import structlog

from atlas_ingest.core.logging_config import configure_logging, request_id_var

Records = Callable[[], list[dict[str, Any]]]


@pytest.fixture
def records() -> Iterator[Records]:
    structlog.contextvars.clear_contextvars()
    configure_logging("INFO")
    (handler,) = logging.getLogger().handlers
    buffer = StringIO()
    previous = handler.setStream(buffer)

    def parsed() -> list[dict[str, Any]]:
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]

    yield parsed
    handler.setStream(previous)


def _event(records: Records, event: str) -> dict[str, Any]:
    matching = [r for r in records() if r.get("event") == event]
    assert matching, f"no {event!r} record"
    return matching[-1]


class TestRendering:
    def test_stdlib_record_carries_level_logger_and_timestamp(self, records: Records) -> None:
        logging.getLogger("atlas_ingest.agent.driver").info("driver: run %s finished", "run_1")

        record = _event(records, "driver: run run_1 finished")
        assert record["level"] == "info"
        assert record["logger"] == "atlas_ingest.agent.driver"
        assert "timestamp" in record

    def test_structlog_fields_survive(self, records: Records) -> None:
        structlog.get_logger("atlas_ingest.api").info("ingest_rejected", upstream_status=401)

        assert _event(records, "ingest_rejected")["upstream_status"] == 401

    def test_debug_is_dropped_at_info(self, records: Records) -> None:
        logging.getLogger("atlas_ingest.agent.driver").debug("driver: poll 1")

        assert not [r for r in records() if r.get("event") == "driver: poll 1"]

    def test_httpx_request_lines_are_quiet(self, records: Records) -> None:
        logging.getLogger("httpx").info('HTTP Request: GET https://store.test "HTTP/1.1 200 OK"')

        assert records() == []


class TestRequestId:
    def test_request_id_is_attached_inside_a_request(self, records: Records) -> None:
        token = request_id_var.set("9b1f")
        try:
            logging.getLogger("atlas_ingest").info("inside")
        finally:
            request_id_var.reset(token)

        assert _event(records, "inside")["request_id"] == "9b1f"

    def test_no_request_id_outside_a_request(self, records: Records) -> None:
        logging.getLogger("atlas_ingest").info("outside")

        assert "request_id" not in _event(records, "outside")


class TestRedaction:
    def test_ingest_key_and_bearer_token_never_rendered(self, records: Records) -> None:
        structlog.get_logger("atlas_ingest.store").info(
            "store_call",
            ingest_key="ik-live-123",
            headers={
                "x-ingest-key": "ik-live-123",
                "Authorization": "Bearer sk-live-456",
                "Content-Type": "application/json",
            },
        )

        record = _event(records, "store_call")
        assert record["ingest_key"] == "[REDACTED]"
        assert record["headers"] == {
            "x-ingest-key": "[REDACTED]",
            "Authorization": "[REDACTED]",
            "Content-Type": "application/json",
        }
        rendered = json.dumps(records())
        assert "ik-live-123" not in rendered
        assert "sk-live-456" not in rendered

    def test_agent_api_key_redacted(self, records: Records) -> None:
        structlog.get_logger("atlas_ingest.config").info("settings_loaded", agent_api_key="sk-1")

        assert _event(records, "settings_loaded")["agent_api_key"] == "[REDACTED]"


def test_reconfiguring_keeps_a_single_root_handler() -> None:
    configure_logging("INFO")
    configure_logging("DEBUG")
    configure_logging("INFO")
    assert len(logging.getLogger().handlers) == 1
