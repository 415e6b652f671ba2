"""Celery task that runs one batch of pending records.

The task builds its own ``httpx.AsyncClient`` and component graph inside
``asyncio.run()``: Celery worker processes have no long-lived event loop,
so nothing bound to a loop may outlive the task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from atlas_ingest.config.settings import Settings, get_settings
from atlas_ingest.core.components import build_components, build_http_client
from atlas_ingest.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run_pipeline(settings: Settings, limit: Optional[int]) -> dict[str, Any]:
    async with build_http_client(settings) as client:
        components = build_components(client, settings)
        result = await components.poller.run_batch(limit)
    return {
        "summary": result.summary(),
        "items": [outcome.to_dict() for outcome in result.outcomes],
    }


@celery_app.task(
    name="atlas_ingest.workers.tasks.process_pipeline_task",
    bind=True,
    acks_late=True,
    max_retries=0,
)
def process_pipeline_task(self: Any, limit: Optional[int] = None) -> dict[str, Any]:
    """Fetch up to ``limit`` pending records and drive one agent run each.

    No auto-retry: a batch is not idempotent with respect to the agent.
    Per-item failures are handled inside the batch; only a failed pending
    fetch makes the task fail.

    Args:
        limit: Page size; defaults to ``settings.batch_size``.

    Returns:
        Dict with ``summary`` (``attempted``/``succeeded``/``failed``) and
        per-item ``items``.
    """
    logger.info("batch: process_pipeline_task %s started (limit=%s)", self.request.id, limit)
    try:
        report = asyncio.run(_run_pipeline(get_settings(), limit))
    except Exception as exc:
        logger.error("batch: process_pipeline_task %s failed: %s", self.request.id, exc)
        raise
    logger.info("batch: process_pipeline_task %s finished: %s", self.request.id, report["summary"])
    return report
