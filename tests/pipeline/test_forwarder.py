"""Unit tests for the webhook forwarder.

Incomplete records must be rejected without any network traffic; complete
records are posted once to the upsert webhook, and forwarding the same URL
twice leaves one logical record behind.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
import respx

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import TransportFailure
from atlas_ingest.core.http_client import ResilientHttpClient
from atlas_ingest.core.models import ScrapedRecord
from atlas_ingest.pipeline.forwarder import VALIDATION_ERROR_MESSAGE, WebhookForwarder

WEBHOOK_URL = "https://store.test/functions/v1/scraper-webhook"


def _record(**overrides: Any) -> ScrapedRecord:
    data = {"source": "idealista", "url": "https://example.com/flat/1", "html": "<html/>"}
    data.update(overrides)
    return ScrapedRecord.from_mapping(data)


@pytest.fixture
def forwarder(resilient_http: ResilientHttpClient, settings: Settings) -> WebhookForwarder:
    return WebhookForwarder(resilient_http, settings=settings)


@pytest.mark.asyncio
class TestValidation:
    @pytest.mark.parametrize("missing", ["source", "url", "html"])
    async def test_missing_field_rejected_without_network(
        self, forwarder: WebhookForwarder, missing: str
    ) -> None:
        with respx.mock(assert_all_called=False) as mock:
            route = mock.post(WEBHOOK_URL)
            result = await forwarder.forward(_record(**{missing: ""}))

        assert route.call_count == 0
        assert result.accepted is False
        assert result.status == 400
        assert result.rejected_locally is True
        assert result.is_client_error
        assert result.body == {"error": VALIDATION_ERROR_MESSAGE, "missing": [missing]}


@pytest.mark.asyncio
class TestForward:
    async def test_posts_record_with_ingest_key(self, forwarder: WebhookForwarder) -> None:
        with respx.mock:
            route = respx.post(WEBHOOK_URL).mock(
                return_value=httpx.Response(200, json={"id": "rec-1", "upserted": True})
            )
            result = await forwarder.forward(_record())

        request = route.calls.last.request
        assert request.headers["x-ingest-key"] == "test-ingest-key"
        assert json.loads(request.content) == {
            "source": "idealista",
            "url": "https://example.com/flat/1",
            "html": "<html/>",
        }
        assert result.accepted is True
        assert result.body == {"id": "rec-1", "upserted": True}

    async def test_upstream_rejection_is_reported(self, forwarder: WebhookForwarder) -> None:
        with respx.mock:
            respx.post(WEBHOOK_URL).mock(
                return_value=httpx.Response(401, json={"error": "bad key"})
            )
            result = await forwarder.forward(_record())

        assert result.accepted is False
        assert result.rejected_locally is False
        assert result.status == 401
        assert result.body == {"error": "bad key"}

    async def test_non_json_reply_is_wrapped(self, forwarder: WebhookForwarder) -> None:
        with respx.mock:
            respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(200, text="OK"))
            result = await forwarder.forward(_record())

        assert result.accepted is True
        assert result.body == {"raw": "OK"}

    async def test_transport_failure_propagates_after_one_attempt(
        self, forwarder: WebhookForwarder
    ) -> None:
        with respx.mock:
            route = respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("down"))
            with pytest.raises(TransportFailure):
                await forwarder.forward(_record())

        assert route.call_count == 1

    async def test_same_url_twice_leaves_one_record(self, forwarder: WebhookForwarder) -> None:
        table: dict[str, dict[str, Any]] = {}

        def upsert(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            table[body["url"]] = body
            return httpx.Response(200, json={"url": body["url"]})

        with respx.mock:
            respx.post(WEBHOOK_URL).mock(side_effect=upsert)
            first = await forwarder.forward(_record(html="<p>v1</p>"))
            second = await forwarder.forward(_record(html="<p>v2</p>"))

        assert first.accepted and second.accepted
        assert list(table) == ["https://example.com/flat/1"]
        assert table["https://example.com/flat/1"]["html"] == "<p>v2</p>"
