"""Celery application factory for Atlas Ingest.

Configures the broker, result backend, serialization and timezone.  All
configuration values are sourced from ``Settings`` so that no secrets or
environment-specific values are hard-coded here.

Usage (starting a worker)::

    celery -A atlas_ingest.workers.celery_app worker --loglevel=info

Usage (starting the Beat scheduler for periodic batches)::

    celery -A atlas_ingest.workers.celery_app beat --loglevel=info
"""

from __future__ import annotations

import logging

from celery import Celery
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env values into os.environ so that worker processes see the same
# agent and store credentials as the API process.
load_dotenv()

from atlas_ingest.config.settings import get_settings  # noqa: E402

settings = get_settings()

#: The global Celery application instance.
celery_app = Celery(
    "atlas_ingest",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["atlas_ingest.workers.tasks"],
)

# ---------------------------------------------------------------------------
# Core configuration
# ---------------------------------------------------------------------------

celery_app.conf.update(
    # All task arguments and return values must be JSON-serializable.
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Acknowledge only after the batch has finished.
    task_acks_late=True,
    # One long-running batch per worker process at a time.
    worker_prefetch_multiplier=1,
    result_expires=86_400,
    # The hard limit sits above the batch's own wall-clock budget so the
    # batch can stop cleanly and report before the worker is killed.
    task_soft_time_limit=int(settings.batch_timeout_seconds) + 300,
    task_time_limit=int(settings.batch_timeout_seconds) + 600,
    beat_schedule_filename="celerybeat-schedule",
)

# Import and apply the Beat schedule after the app is configured.
from atlas_ingest.workers.beat_schedule import build_beat_schedule  # noqa: E402

celery_app.conf.beat_schedule = build_beat_schedule(settings)
_logger.debug("celery: beat schedule entries: %s", sorted(celery_app.conf.beat_schedule))
