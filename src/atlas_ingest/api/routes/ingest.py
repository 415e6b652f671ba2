"""``POST /ingest-listing``: hand one scraped page to the upsert webhook."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from atlas_ingest.api.dependencies import get_forwarder
from atlas_ingest.core.exceptions import TransportFailure
from atlas_ingest.core.models import ScrapedRecord
from atlas_ingest.core.schemas import IngestListingRequest
from atlas_ingest.pipeline.forwarder import WebhookForwarder

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/ingest-listing")
async def ingest_listing(
    body: IngestListingRequest,
    forwarder: Annotated[WebhookForwarder, Depends(get_forwarder)],
) -> JSONResponse:
    """Forward a scraped page to the store.

    Returns:
        ``{"status": "success", "result": <webhook body>}`` when the webhook
        accepts the record.  ``400`` with ``{"error", "missing"}`` for an
        incomplete record; ``502`` when the webhook is unreachable or
        rejects the record.
    """
    record = ScrapedRecord.from_mapping(body.model_dump())
    try:
        result = await forwarder.forward(record)
    except TransportFailure as exc:
        logger.warning("ingest_transport_failure", url=record.url, attempts=exc.attempts)
        return JSONResponse(
            {"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY
        )

    if result.rejected_locally:
        logger.info("ingest_invalid", missing=result.body["missing"])
        return JSONResponse(result.body, status_code=status.HTTP_400_BAD_REQUEST)

    if not result.accepted:
        logger.warning("ingest_rejected", url=record.url, upstream_status=result.status)
        return JSONResponse(
            {
                "error": f"webhook rejected the record (status {result.status})",
                "upstream_status": result.status,
                "result": result.body,
            },
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    logger.info("ingest_forwarded", url=record.url)
    return JSONResponse({"status": "success", "result": result.body})
