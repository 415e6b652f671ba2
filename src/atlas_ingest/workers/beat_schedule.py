"""Celery Beat periodic task schedule for Atlas Ingest.

There is a single periodic job, ``process_pipeline``, which runs one batch
of pending records every ``pipeline_schedule_minutes``.  A value of ``0``
(the default) disables it, leaving batches to ``POST /process-pipeline``.
"""

from __future__ import annotations

from datetime import timedelta

from atlas_ingest.config.settings import Settings

PROCESS_PIPELINE_TASK = "atlas_ingest.workers.tasks.process_pipeline_task"


def build_beat_schedule(settings: Settings) -> dict[str, dict]:  # type: ignore[type-arg]
    """Return the Beat schedule for *settings*.

    Returns:
        ``{}`` when ``pipeline_schedule_minutes`` is not positive.
    """
    minutes = settings.pipeline_schedule_minutes
    if minutes <= 0:
        return {}
    interval = timedelta(minutes=minutes)
    return {
        "process_pipeline": {
            "task": PROCESS_PIPELINE_TASK,
            "schedule": interval,
            "options": {
                "queue": "celery",
                # discard if the previous batch is still holding the worker
                "expires": interval.total_seconds(),
            },
        },
    }
