"""Batch routes: run one pending page through the agent, list recent results.

``POST /process-pipeline``
    Fetches up to ``limit`` pending records and drives one agent run per
    record, sequentially.  Per-item failures are reported in ``items``;
    only a failed pending fetch turns the whole request into a 502.

``GET /recent-processed``
    Lists records normalized within the last ``window_hours``.
"""

from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from atlas_ingest.api.dependencies import get_poller, get_store
from atlas_ingest.core.exceptions import AtlasIngestError, PendingFetchError
from atlas_ingest.core.schemas import ProcessPipelineRequest
from atlas_ingest.pipeline.batch import BatchPoller
from atlas_ingest.store.client import StoreClient

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/process-pipeline")
async def process_pipeline(
    poller: Annotated[BatchPoller, Depends(get_poller)],
    body: Optional[ProcessPipelineRequest] = None,
) -> JSONResponse:
    """Run one batch of pending records.

    Returns:
        ``{"status": "ok", "summary": {attempted, succeeded, failed},
        "items": [...]}``, or ``502`` when the pending page cannot be fetched.
    """
    body = body or ProcessPipelineRequest()
    try:
        result = await poller.run_batch(body.limit, timeout=body.timeout_seconds)
    except PendingFetchError as exc:
        logger.warning("pipeline_pending_fetch_failed", error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)

    logger.info("pipeline_batch_complete", **result.summary())
    return JSONResponse(
        {
            "status": "ok",
            "summary": result.summary(),
            "items": [outcome.to_dict() for outcome in result.outcomes],
        }
    )


@router.get("/recent-processed")
async def recent_processed(
    store: Annotated[StoreClient, Depends(get_store)],
    window_hours: Annotated[int, Query(ge=1, le=24 * 30)] = 24,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> JSONResponse:
    """Return records normalized in the last ``window_hours``."""
    try:
        rows = await store.get_recent_processed(window_hours, limit)
    except AtlasIngestError as exc:
        logger.warning("recent_processed_failed", error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)
    return JSONResponse({"status": "ok", "count": len(rows), "data": rows})
