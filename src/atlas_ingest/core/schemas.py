"""Pydantic request bodies for the inbound HTTP routes.

Fields that the core validates itself (the three scraped-record fields)
are optional here on purpose: a missing field must reach the forwarder so
that it answers with its own 400 classification rather than FastAPI's
generic 422.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class IngestListingRequest(BaseModel):
    """Body of ``POST /ingest-listing``."""

    model_config = ConfigDict(extra="ignore")

    source: Optional[str] = None
    url: Optional[str] = None
    html: Optional[str] = None


class ProcessPipelineRequest(BaseModel):
    """Body of ``POST /process-pipeline``.  Every field is optional."""

    limit: Optional[int] = Field(default=None, ge=1, le=500)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)


class RunTaskRequest(BaseModel):
    """Body of ``POST /run-task``."""

    payload: dict[str, Any]
    max_polls: Optional[int] = Field(default=None, ge=1)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
