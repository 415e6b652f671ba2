"""Liveness route handlers for the Atlas Ingest API.

``GET /``
    Plain-text banner, kept for uptime probes that only look for a 200.

``GET /healthz``
    JSON liveness check: ``{"ok": true, "timestamp": ...}``.  Performs no
    I/O against the agent or the store.

These endpoints are diagnostic; they must never raise HTTP 5xx errors.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from atlas_ingest.config.settings import get_settings

router = APIRouter(tags=["system"])


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return f"{get_settings().app_name} running"


@router.get("/healthz")
async def healthz() -> JSONResponse:
    """Return a minimal process-level liveness status.

    Returns:
        JSON with keys ``ok`` and ``timestamp`` (ISO 8601, UTC).
    """
    return JSONResponse({"ok": True, "timestamp": datetime.now(UTC).isoformat()})
