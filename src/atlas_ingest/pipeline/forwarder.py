"""Forward raw scraped pages to the store's upsert webhook.

The webhook is contracted to insert-or-replace on ``url`` and refresh the
record's ``scraped_at`` timestamp, so forwarding is idempotent per URL and
this module performs no duplicate detection of its own.

Incomplete records are rejected before any network traffic.  The forwarder
has no retry loop of its own: it delegates to the resilient client with
``settings.webhook_max_attempts`` (``1`` by default), and a transport
failure propagates to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import ValidationFailure
from atlas_ingest.core.http_client import MalformedResponse, ResilientHttpClient
from atlas_ingest.core.models import REQUIRED_RECORD_FIELDS, ScrapedRecord
from atlas_ingest.store.client import store_headers

logger = logging.getLogger(__name__)

VALIDATION_ERROR_MESSAGE = f"Required fields: {', '.join(REQUIRED_RECORD_FIELDS)}"


@dataclass(frozen=True)
class ForwardResult:
    """Outcome of one forward attempt.

    Attributes:
        accepted: ``True`` when the webhook answered with a 2xx status.
        status: HTTP status of the webhook response, or ``400`` for a
            record rejected locally.
        body: Decoded response body; ``{"raw": ...}`` for a non-JSON body.
        rejected_locally: ``True`` when the record failed validation and
            the webhook was never called.
    """

    accepted: bool
    status: int
    body: Any = field(default=None)
    rejected_locally: bool = False

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class WebhookForwarder:
    """Validate scraped records and push them to the upsert webhook.

    Args:
        http: Shared resilient HTTP client.
        settings: Supplies the webhook address, credential and attempt ceiling.
    """

    def __init__(self, http: ResilientHttpClient, *, settings: Settings) -> None:
        self._http = http
        self._url = f"{settings.store_base_url.rstrip('/')}{settings.webhook_path}"
        self._headers = store_headers(settings)
        self._max_attempts = settings.webhook_max_attempts

    async def forward(self, record: ScrapedRecord) -> ForwardResult:
        """Send *record* to the webhook.

        Returns:
            A :class:`ForwardResult`.  Incomplete records come back with
            ``status=400`` without contacting the network.

        Raises:
            TransportFailure: If the webhook could not be reached.
        """
        try:
            record.validate()
        except ValidationFailure as exc:
            logger.info("forwarder: rejecting record with missing fields %s", exc.missing)
            return ForwardResult(
                accepted=False,
                status=400,
                body={"error": VALIDATION_ERROR_MESSAGE, "missing": exc.missing},
                rejected_locally=True,
            )

        result = await self._http.call(
            self._url,
            method="POST",
            headers=self._headers,
            json=record.to_payload(),
            max_attempts=self._max_attempts,
        )

        body: Any
        if isinstance(result, MalformedResponse):
            body = {"raw": result.raw}
        else:
            body = result.data

        if result.ok:
            logger.info("forwarder: forwarded %s (status=%d)", record.url, result.status_code)
        else:
            logger.warning(
                "forwarder: webhook rejected %s (status=%d)", record.url, result.status_code
            )
        return ForwardResult(accepted=result.ok, status=result.status_code, body=body)
