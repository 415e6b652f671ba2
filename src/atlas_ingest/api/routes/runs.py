"""``POST /run-task``: drive a single agent run for an arbitrary payload."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from atlas_ingest.agent.driver import RunDriver
from atlas_ingest.api.dependencies import get_driver
from atlas_ingest.core.exceptions import RunCreationError
from atlas_ingest.core.schemas import RunTaskRequest

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/run-task")
async def run_task(
    body: RunTaskRequest,
    driver: Annotated[RunDriver, Depends(get_driver)],
) -> JSONResponse:
    """Create a run for ``payload`` and drive it to a terminal state.

    Returns:
        ``{"status": "ok", "run": {...}}`` for any terminal outcome,
        including ``failed`` and ``expired``.  ``502`` when the run cannot
        be created; ``504`` when the budget runs out before creation
        completes.
    """
    try:
        result = await driver.drive(
            body.payload,
            max_polls=body.max_polls,
            timeout=body.timeout_seconds,
        )
    except RunCreationError as exc:
        logger.warning("run_creation_failed", error=str(exc), upstream_status=exc.status_code)
        return JSONResponse({"error": str(exc)}, status_code=status.HTTP_502_BAD_GATEWAY)
    except TimeoutError:
        logger.warning("run_creation_timed_out")
        return JSONResponse(
            {"error": "run creation exceeded its time budget"},
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        )

    logger.info("run_finished", run_id=result.run_id, final_status=result.final_status.value)
    return JSONResponse({"status": "ok", "run": result.to_dict()})
