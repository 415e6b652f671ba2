"""``GET /proxy``: show what the render collaborator sees for a URL.

A debugging aid for scraper authors.  Any page with a body is reported,
error statuses included, so a bot-wall challenge shows up as its status
code and a preview of the challenge HTML.  Nothing is stored.
"""

from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from atlas_ingest.api.dependencies import get_renderer
from atlas_ingest.core.exceptions import RenderError
from atlas_ingest.scraper.config import PREVIEW_CHARS
from atlas_ingest.scraper.renderer import Renderer

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/proxy")
async def proxy(
    renderer: Annotated[Renderer, Depends(get_renderer)],
    url: Annotated[Optional[str], Query()] = None,
) -> JSONResponse:
    if not url:
        return JSONResponse(
            {"error": "Missing url parameter"}, status_code=status.HTTP_400_BAD_REQUEST
        )

    try:
        page = await renderer.fetch(url)
    except RenderError as exc:
        logger.warning("proxy_render_failed", url=url, error=str(exc))
        return JSONResponse(
            {"error": str(exc), "code": exc.status_code, "url": url},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    if page.html is None:
        logger.warning("proxy_no_page", url=url, error=page.error)
        return JSONResponse(
            {"error": page.error, "code": page.status_code, "url": url},
            status_code=status.HTTP_502_BAD_GATEWAY,
        )

    logger.info("proxy_fetched", url=url, code=page.status_code, html_length=len(page.html))
    return JSONResponse(
        {
            "status": "ok",
            "code": page.status_code,
            "url": url,
            "html_length": len(page.html),
            "preview": page.html[:PREVIEW_CHARS],
        }
    )
